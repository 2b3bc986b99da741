"""Asset locator reading URL lists exported from the database."""

import json
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

import yaml

from domain.asset_url import references_account
from domain.exceptions import ConfigurationError
from domain.models import AssetRef
from shared.logging import get_logger
from shared.types import PathLike

logger = get_logger(__name__)


class FileAssetLocator:
    """
    Candidate URLs from a file.

    Accepted formats, picked by extension:
      - ``.yaml`` / ``.yml``: a list of URLs, or a mapping of collection name to list
      - ``.json``: same shapes as YAML
      - anything else: one URL per line, ``#`` starts a comment

    Only URLs that reference one of the source accounts are kept,
    de-duplicated in first-seen order.
    """

    def __init__(
        self,
        path: PathLike,
        source_accounts: Union[List[str], Callable[[], List[str]]] = ()
    ):
        """
        Args:
            path: URL list file
            source_accounts: Account names, or a callable returning them so
                the list can follow the account registry
        """
        self.path = Path(path)
        self._source_accounts = source_accounts
        self._logger = get_logger(__name__)

    def source_accounts(self) -> List[str]:
        if callable(self._source_accounts):
            return list(self._source_accounts())
        return list(self._source_accounts)

    def _read_entries(self) -> Iterable[str]:
        if not self.path.exists():
            raise ConfigurationError(f"Asset list not found: {self.path}")

        with open(self.path, 'r', encoding='utf-8') as f:
            if self.path.suffix.lower() in ('.yaml', '.yml'):
                try:
                    data = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"Invalid asset list {self.path}: {e}") from e
            elif self.path.suffix.lower() == '.json':
                try:
                    data = json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(f"Invalid asset list {self.path}: {e}") from e
            else:
                return [
                    line.strip() for line in f
                    if line.strip() and not line.strip().startswith('#')
                ]

        if data is None:
            return []
        if isinstance(data, dict):
            entries = []
            for collection, urls in data.items():
                if not isinstance(urls, list):
                    raise ConfigurationError(f"Collection '{collection}' in {self.path} is not a list")
                entries.extend(urls)
            return [str(u).strip() for u in entries if u]
        if isinstance(data, list):
            return [str(u).strip() for u in data if u]
        raise ConfigurationError(f"Unsupported asset list format in {self.path}")

    def list_candidate_asset_refs(self) -> List[Union[AssetRef, str]]:
        accounts = self.source_accounts()
        seen = set()
        candidates: List[Union[AssetRef, str]] = []
        skipped = 0

        for url in self._read_entries():
            if url in seen:
                continue
            seen.add(url)
            if accounts and not references_account(url, accounts):
                skipped += 1
                continue
            candidates.append(url)

        self._logger.info(
            f"Found {len(candidates)} candidate URLs in {self.path} "
            f"({skipped} not on a source account)"
        )
        return candidates
