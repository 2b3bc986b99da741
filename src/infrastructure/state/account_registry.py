"""Registry of active, retired and pending storage accounts."""

import threading
from pathlib import Path
from typing import Optional, List, Dict, Any

import yaml

from domain.models import DestinationCredentials, RetiredAccount, utcnow
from shared.atomic import atomic_write_text
from shared.logging import get_logger
from shared.secrets import SecretBox
from shared.types import PathLike

logger = get_logger(__name__)


class AccountRegistry:
    """
    YAML-backed account state.

    Layout::

        active:   {account_name, api_key, api_secret_encrypted, activated_at}
        retired:  [{accountName, retiredAt, migratedToAccount}, ...]  # oldest first
        pending:  {account_name, api_key, api_secret_encrypted}

    API secrets are only ever written encrypted.
    """

    def __init__(self, path: Optional[PathLike] = None, secret_box: Optional[SecretBox] = None):
        self.path = Path(path or ".migration/accounts.yaml")
        self._box = secret_box or SecretBox()
        self._lock = threading.RLock()
        self._logger = get_logger(__name__)

    # Persistence

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            self._logger.warning(f"Ignoring malformed account registry {self.path}")
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        atomic_write_text(self.path, yaml.safe_dump(data, sort_keys=False))

    def _encode(self, credentials: DestinationCredentials) -> Dict[str, Any]:
        return {
            'account_name': credentials.account_name,
            'api_key': credentials.api_key,
            'api_secret_encrypted': self._box.encrypt(credentials.api_secret),
        }

    def _decode(self, entry: Optional[Dict[str, Any]]) -> Optional[DestinationCredentials]:
        if not entry or not entry.get('account_name'):
            return None
        token = entry.get('api_secret_encrypted')
        return DestinationCredentials(
            account_name=entry['account_name'],
            api_key=entry.get('api_key', ''),
            api_secret=self._box.decrypt(token) if token else '',
        )

    # Seeding

    def seed(
        self,
        retired_accounts: List[str],
        active: Optional[DestinationCredentials] = None
    ) -> bool:
        """
        Initialize an empty registry from configuration.

        Retired names are taken in the given order, each one recorded as
        migrated to the next (the last one to the active account).

        Returns:
            True if the registry was written
        """
        with self._lock:
            data = self._read()
            if data.get('active') or data.get('retired'):
                return False

            active_name = active.account_name if active and active.validate() else None
            names = [n for n in retired_accounts if n and n != active_name]
            now = utcnow()
            retired = []
            for index, name in enumerate(names):
                successor = names[index + 1] if index + 1 < len(names) else active_name
                retired.append(RetiredAccount(
                    account_name=name,
                    retired_at=now,
                    migrated_to_account=successor,
                ).to_dict())

            if not retired and not active_name:
                return False

            data['retired'] = retired
            if active_name:
                data['active'] = dict(self._encode(active), activated_at=now.isoformat())
            self._write(data)

        self._logger.info(
            f"Seeded account registry: active={active_name}, "
            f"retired=[{', '.join(names)}]"
        )
        return True

    # Queries

    def active_account(self) -> Optional[DestinationCredentials]:
        with self._lock:
            return self._decode(self._read().get('active'))

    def active_masked(self) -> Optional[Dict[str, str]]:
        """Active account for display, secret masked."""
        active = self.active_account()
        return active.masked() if active else None

    def retired_accounts(self) -> List[RetiredAccount]:
        """Retired accounts, oldest first."""
        with self._lock:
            entries = self._read().get('retired') or []
        return [RetiredAccount.from_dict(e) for e in entries]

    def source_accounts(self) -> List[str]:
        """Accounts assets may still live in: retired oldest first, then the active one."""
        names = [r.account_name for r in self.retired_accounts()]
        active = self.active_account()
        if active and active.account_name not in names:
            names.append(active.account_name)
        return names

    # Pending destination

    def set_pending(self, credentials: DestinationCredentials) -> None:
        """Remember the destination of the running job so it can be continued later."""
        with self._lock:
            data = self._read()
            data['pending'] = self._encode(credentials)
            self._write(data)

    def pending(self) -> Optional[DestinationCredentials]:
        with self._lock:
            return self._decode(self._read().get('pending'))

    def clear_pending(self) -> None:
        with self._lock:
            data = self._read()
            if data.pop('pending', None) is not None:
                self._write(data)

    # Transitions

    def finalize(self, destination: DestinationCredentials) -> bool:
        """
        Make the destination the active account after a completed migration.

        The previous active account is retired with ``migrated_to_account``
        set to the destination. Nothing changes when the destination already
        is the active account.

        Returns:
            True if the registry changed
        """
        with self._lock:
            data = self._read()
            current = self._decode(data.get('active'))
            if current and current.account_name == destination.account_name:
                data.pop('pending', None)
                self._write(data)
                return False

            retired = data.get('retired') or []
            if current and all(r.get('accountName') != current.account_name for r in retired):
                retired.append(RetiredAccount(
                    account_name=current.account_name,
                    retired_at=utcnow(),
                    migrated_to_account=destination.account_name,
                ).to_dict())
            data['retired'] = [
                r for r in retired if r.get('accountName') != destination.account_name
            ]
            data['active'] = dict(self._encode(destination), activated_at=utcnow().isoformat())
            data.pop('pending', None)
            self._write(data)

        self._logger.info(
            f"Account registry updated: "
            f"{current.account_name if current else None} -> {destination.account_name}"
        )
        return True
