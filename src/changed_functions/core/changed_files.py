"""Retrieval of the files changed between two commits."""

import json
import logging
from typing import Any, Dict, List, Optional

import git
import httpx

from ..analyzers.path_classifier import compile_pattern
from ..errors import ChangedFilesError, ConfigurationError


logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 30.0
_DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
_SHORT_SHA_LENGTH = 7

# the compare API lists at most 3000 files, 100 per page
_PAGE_SIZE = 100
_MAX_PAGES = 30


def load_push_event(event_path: Optional[str]) -> Dict[str, Any]:
    """Load a GitHub webhook event payload, or an empty dict when there is none."""
    if not event_path:
        return {}

    try:
        with open(event_path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Could not read GitHub event payload {event_path}: {e}") from e

    return payload if isinstance(payload, dict) else {}


def filter_changed_files(file_paths: List[str], pattern: Optional[str]) -> List[str]:
    """Keep only the paths matching the optional filter regex."""
    if not pattern:
        return list(file_paths)

    file_filter = compile_pattern(pattern, 'changed file filter')
    logger.debug("Applying changed file filter: %s", pattern)

    return [file_path for file_path in file_paths if file_filter.search(file_path)]


class GitHubComparisonSource:
    """Changed files from the GitHub commit comparison API."""

    def __init__(self, compare_url: str, before: str, after: str, token: str,
                 timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
                 connect_timeout_seconds: float = _DEFAULT_CONNECT_TIMEOUT_SECONDS,
                 client: Optional[httpx.Client] = None):
        self.compare_url = compare_url
        self.before = before
        self.after = after
        self.token = token
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=connect_timeout_seconds)
        )

    def comparison_url(self) -> str:
        """Fill the ``{base}``/``{head}`` placeholders of the compare URL template."""
        if not (self.compare_url and self.before and self.after):
            raise ChangedFilesError(
                "A compare URL and both commit SHAs are required to fetch the comparison"
            )

        return (self.compare_url
                .replace('{base}', self.before[:_SHORT_SHA_LENGTH])
                .replace('{head}', self.after[:_SHORT_SHA_LENGTH]))

    def fetch(self) -> List[str]:
        """Every changed file of the comparison, following the API's pagination."""
        url = self.comparison_url()
        logger.debug("Fetching GitHub comparison through: %s", url)

        file_paths: List[str] = []
        seen = set()
        for page in range(1, _MAX_PAGES + 1):
            files = self._fetch_page(url, page)
            new_paths = [path for path in dict.fromkeys(self._filenames(url, files)) if path not in seen]
            seen.update(new_paths)
            file_paths.extend(new_paths)

            # a short page, or one repeating earlier files, is the last one
            if len(files) < _PAGE_SIZE or not new_paths:
                logger.debug("%d files changed in the comparison.", len(file_paths))
                return file_paths

        raise ChangedFilesError(
            f"GitHub comparison {url} lists more than {_MAX_PAGES * _PAGE_SIZE} files"
        )

    def _fetch_page(self, url: str, page: int) -> List[Any]:
        try:
            response = self._client.get(
                url,
                params={'per_page': _PAGE_SIZE, 'page': page},
                headers={
                    'Authorization': f"Bearer {self.token}",
                    'Accept': 'application/vnd.github+json',
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise ChangedFilesError(f"Timed out fetching GitHub comparison {url}") from e
        except httpx.HTTPError as e:
            raise ChangedFilesError(f"Failed to fetch GitHub comparison {url}: {e}") from e
        except ValueError as e:
            raise ChangedFilesError(f"GitHub comparison {url} did not return JSON") from e

        files = payload.get('files') if isinstance(payload, dict) else None
        if not isinstance(files, list):
            raise ChangedFilesError(f"GitHub comparison {url} returned no file list")
        return files

    def _filenames(self, url: str, files: List[Any]) -> List[str]:
        file_paths = []
        for entry in files:
            if not isinstance(entry, dict) or not isinstance(entry.get('filename'), str):
                raise ChangedFilesError(f"GitHub comparison {url} returned a malformed file entry: {entry!r}")
            if entry['filename']:
                file_paths.append(entry['filename'])
        return file_paths

    def close(self):
        self._client.close()


class GitDiffSource:
    """Changed files from a local git repository."""

    def __init__(self, repository: str, before: str, after: str):
        self.repository = repository
        self.before = before
        self.after = after

    def fetch(self) -> List[str]:
        if not (self.before and self.after):
            raise ChangedFilesError("Both commit SHAs are required to diff the repository")

        try:
            repo = git.Repo(self.repository, search_parent_directories=True)
            diffs = repo.commit(self.before).diff(self.after)
        except (git.exc.GitError, git.exc.BadName, ValueError) as e:
            raise ChangedFilesError(
                f"Failed to diff {self.before}..{self.after} in {self.repository}: {e}"
            ) from e

        # deleted files only have an old path
        file_paths = list(dict.fromkeys(diff.b_path or diff.a_path for diff in diffs))
        logger.debug("%d files changed between %s and %s.", len(file_paths), self.before, self.after)
        return file_paths
