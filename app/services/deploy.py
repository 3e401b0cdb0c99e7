"""Turn build results into deployable files and write them to an object store.

The local :class:`DirectoryStore` lays objects out exactly as the edge worker
expects to find them in its bucket: ``<prefix>/<artifact path>``.
"""

import hashlib
import logging
import re
from pathlib import Path
from typing import List, NamedTuple, Optional, Sequence, Union

from app.config import OUTPUT_DIR
from app.models.build import BuildResult
from app.models.deploy import DeploySummary
from app.models.site import LandingSite
from app.models.worker_config import WorkerConfig
from app.services.edge import CONTENT_TYPES
from app.services.routes import artifact_path

logger = logging.getLogger(__name__)

WORKER_CONFIG_FILE = "_worker.json"
WORKER_SCRIPT_FILE = "_worker.js"


class DeployFile(NamedTuple):
    path: str  # relative to the site prefix, e.g. "blog/my-post/index.html"
    content: str
    content_type: str


def prepare_build_files(result: BuildResult, tracking_script: Optional[str] = None) -> List[DeployFile]:
    """Lay out *result* as deploy files; pages that failed validation are left out.

    A page whose base document is invalid is left out together with all of
    its variants, so an experiment is never deployed without its control.

    The tracking script, when given, is inserted before ``</body>`` after
    validation has run, so it does not count against the zero-JS rule.
    """
    files: List[DeployFile] = []
    rejected = {
        page.page_id for page in result.pages
        if page.variant_key is None and not page.validation.valid
    }

    for page in result.pages:
        if not page.validation.valid or page.page_id in rejected:
            continue
        html = page.html
        if tracking_script:
            html = html.replace("</body>", f"{tracking_script}\n</body>", 1)
        path = artifact_path(page.page_type, page.slug, page.variant_key)
        files.append(DeployFile(path, html, CONTENT_TYPES["html"]))

    files.append(DeployFile("sitemap.xml", result.sitemap, CONTENT_TYPES["xml"]))
    files.append(DeployFile("robots.txt", result.robots_txt, CONTENT_TYPES["txt"]))
    files.append(DeployFile("feed.xml", result.rss_feed, CONTENT_TYPES["xml"]))
    return files


def default_prefix(site: LandingSite) -> str:
    """Object-store prefix for *site*: subdomain, then domain, then id."""
    raw = site.subdomain or site.domain or site.id
    return re.sub(r"[^A-Za-z0-9._-]", "-", raw).strip(".-") or "site"


class DirectoryStore:
    """Filesystem-backed object store keyed by ``/``-separated paths."""

    def __init__(self, root: Union[str, Path, None] = None) -> None:
        self.root = Path(root if root is not None else OUTPUT_DIR).resolve()

    def _path(self, key: str) -> Optional[Path]:
        path = (self.root / key.lstrip("/")).resolve()
        if path != self.root and self.root not in path.parents:
            return None
        return path

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if path is None or not path.is_file():
            return None
        return path.read_bytes()

    def put(self, key: str, data: bytes) -> bool:
        """Write *data* under *key*; returns ``False`` when the stored copy is identical.

        Raises:
            ValueError: if *key* escapes the store root.
        """
        path = self._path(key)
        if path is None:
            raise ValueError(f"Key '{key}' is outside the store.")
        if path.is_file() and _md5(path.read_bytes()) == _md5(data):
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return True

    def deploy(self, prefix: str, files: Sequence[DeployFile]) -> DeploySummary:
        """Upload *files* under *prefix*, skipping unchanged ones."""
        uploaded = 0
        skipped = 0
        errors: List[str] = []

        for file in files:
            key = f"{prefix}/{file.path}"
            try:
                if self.put(key, file.content.encode("utf-8")):
                    uploaded += 1
                else:
                    skipped += 1
            except (OSError, ValueError) as exc:
                errors.append(f"Failed to upload {key}: {exc}")

        logger.info(
            "Deployed files",
            extra={"prefix": prefix, "uploaded": uploaded, "skipped": skipped, "errors": len(errors)},
        )
        return DeploySummary(uploaded=uploaded, skipped=skipped, errors=errors)

    def save_worker(self, config: WorkerConfig, script: str) -> None:
        prefix = config.r2_bucket_binding
        self.put(f"{prefix}/{WORKER_CONFIG_FILE}", config.model_dump_json(by_alias=True, indent=2).encode("utf-8"))
        self.put(f"{prefix}/{WORKER_SCRIPT_FILE}", script.encode("utf-8"))

    def load_worker_config(self, prefix: str) -> Optional[WorkerConfig]:
        raw = self.get(f"{prefix}/{WORKER_CONFIG_FILE}")
        if raw is None:
            return None
        return WorkerConfig.model_validate_json(raw)


def _md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()
