"""Service configuration, loaded from environment variables."""

import os
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent

# Root directory of the local object store written by /deploy
OUTPUT_DIR = Path(os.environ.get("LANDING_OUTPUT_DIR", "build"))

# Host suffix appended to a site's subdomain when it has no custom domain
SUBDOMAIN_ROOT = os.environ.get("LANDING_SUBDOMAIN_ROOT", "seo-os.com")

# JSON document with the SEO validation rule groups
SEO_RULES_PATH = Path(os.environ.get("LANDING_SEO_RULES", APP_DIR / "data" / "seo_rules.json"))

# Analytics collection endpoint used by the tracking beacon and the worker
COLLECT_ENDPOINT = os.environ.get("LANDING_COLLECT_ENDPOINT", "/api/pulse/collect")
