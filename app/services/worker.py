"""Generate the edge worker script serving a deployed site.

The script is a self-contained ES module for a Workers-style runtime with an
object-store binding named ``R2``.  Its configuration, including the content
type and cache tables from :mod:`app.services.edge`, is embedded as a JSON
literal so that the Python preview and the deployed script agree.
"""

import json
from typing import Any, Dict

from app.models.worker_config import WorkerConfig
from app.services.edge import (
    AB_COOKIE_MAX_AGE,
    AB_COOKIE_PREFIX,
    ASSET_CACHE_CONTROL,
    CONTENT_TYPES,
    DEFAULT_CONTENT_TYPE,
    HTML_CACHE_CONTROL,
    NOT_FOUND_CACHE_CONTROL,
    POWERED_BY,
    UTM_KEYS,
    popup_loader_script,
)
from app.services.routes import INDEX_SLUG, VARIANT_DIR_PREFIX

_CONFIG_PLACEHOLDER = "__WORKER_CONFIG__"

_SCRIPT = r"""// Landing Engine edge worker
// Auto-generated. Do not edit manually.
//
// Site ID:   __SITE_ID__
// R2 prefix: __PREFIX__

const CONFIG = __WORKER_CONFIG__;

function normalizePath(pathname) {
  if (pathname === "" || pathname === "/") return "/index.html";
  var last = pathname.split("/").pop();
  if (last.indexOf(".") === -1) return pathname.replace(/\/+$/, "") + "/index.html";
  return pathname;
}

function routeKey(path) {
  return path.replace(/\/index\.html$/, "").replace(/^\/+/, "") || CONFIG.indexSlug;
}

function variantPath(path, key) {
  var base = path.replace(/\/index\.html$/, "");
  if (base === "/") base = "";
  return base + "/" + CONFIG.variantDirPrefix + key + "/index.html";
}

function extensionOf(path) {
  var last = path.split("/").pop();
  var dot = last.lastIndexOf(".");
  return dot === -1 ? "" : last.substring(dot + 1).toLowerCase();
}

function cookieName(route) {
  return CONFIG.cookiePrefix + route.replace(/[^a-z0-9]/gi, "_");
}

function readCookie(header, name) {
  var parts = (header || "").split(";");
  for (var i = 0; i < parts.length; i++) {
    var part = parts[i].trim();
    if (part.indexOf(name + "=") === 0) return part.substring(name.length + 1);
  }
  return null;
}

function pickVariant(variants, draw) {
  var total = 0;
  for (var i = 0; i < variants.length; i++) total += variants[i].weight;
  if (total <= 0) return null;
  var target = draw * total;
  var cumulative = 0;
  for (var j = 0; j < variants.length; j++) {
    cumulative += variants[j].weight;
    if (target < cumulative) return variants[j].key;
  }
  return variants[variants.length - 1].key;
}

function findExperiment(route) {
  for (var i = 0; i < CONFIG.experiments.length; i++) {
    var exp = CONFIG.experiments[i];
    if (exp.route === route && exp.variants.length) return exp;
  }
  return null;
}

function findRule(type) {
  for (var i = 0; i < CONFIG.edgeRules.length; i++) {
    var rule = CONFIG.edgeRules[i];
    if (rule.type === type && rule.enabled) return rule;
  }
  return null;
}

function escapeHtml(value) {
  return String(value)
    .replace(/&/g, "&amp;")
    .replace(/</g, "&lt;")
    .replace(/>/g, "&gt;")
    .replace(/"/g, "&quot;")
    .replace(/'/g, "&#39;");
}

function escapeRegExp(value) {
  return value.replace(/[.*+?^${}()|[\]\\]/g, "\\$&");
}

function swapEdge(html, field, value) {
  var name = escapeRegExp(field);
  var re = new RegExp("(<!--EDGE:" + name + "-->)[\\s\\S]*?(<!--/EDGE:" + name + "-->)", "g");
  return html.replace(re, function (_m, open, close) { return open + value + close; });
}

function applyEdgeRules(html, url, request) {
  if (findRule("utm_persist")) {
    var inputs = "";
    CONFIG.utmKeys.forEach(function (key) {
      var value = url.searchParams.get(key);
      if (value) inputs += '<input type="hidden" name="' + key + '" value="' + escapeHtml(value) + '">\n';
    });
    if (inputs) html = html.replace(/<\/form>/gi, function () { return inputs + "</form>"; });
  }

  var country = ((request.cf && request.cf.country) || request.headers.get("CF-IPCountry") || "").toUpperCase();
  var geo = findRule("geo_swap");
  if (geo && country) {
    geo.rules.forEach(function (rule) {
      if (rule.match.toUpperCase() === country) html = swapEdge(html, rule.field, rule.value);
    });
  }

  var referrer = (request.headers.get("Referer") || "").toLowerCase();
  var byReferrer = findRule("referrer_swap");
  if (byReferrer && referrer) {
    byReferrer.rules.forEach(function (rule) {
      if (referrer.indexOf(rule.match.toLowerCase()) !== -1) html = swapEdge(html, rule.field, rule.value);
    });
  }

  var source = (url.searchParams.get("utm_source") || "").toLowerCase();
  var bySource = findRule("utm_swap");
  if (bySource && source) {
    bySource.rules.forEach(function (rule) {
      if (rule.match.toLowerCase() === source) html = swapEdge(html, rule.field, rule.value);
    });
  }

  return html;
}

export default {
  async fetch(request, env) {
    var url = new URL(request.url);
    var path = normalizePath(url.pathname);
    var route = routeKey(path);

    var experiment = findExperiment(route);
    var variantKey = null;
    var newAssignment = false;
    if (experiment) {
      var fromCookie = readCookie(request.headers.get("Cookie"), cookieName(route));
      var known = experiment.variants.some(function (v) { return v.key === fromCookie; });
      if (fromCookie !== null && known) {
        variantKey = fromCookie;
      } else {
        variantKey = pickVariant(experiment.variants, Math.random());
        newAssignment = variantKey !== null;
      }
    }

    var baseKey = CONFIG.prefix + "/" + path.replace(/^\/+/, "");
    var objectKey = baseKey;
    if (variantKey && experiment.controlKeys.indexOf(variantKey) === -1) {
      objectKey = CONFIG.prefix + "/" + variantPath(path, variantKey).replace(/^\/+/, "");
    }

    var object = await env.R2.get(objectKey);
    if (!object && objectKey !== baseKey) object = await env.R2.get(baseKey);

    if (!object && CONFIG.fallbackOrigin) {
      try {
        var originUrl = new URL(url.pathname + url.search, CONFIG.fallbackOrigin);
        return await fetch(originUrl.toString(), { headers: request.headers, redirect: "follow" });
      } catch (_e) {
        // origin unreachable: serve the 404 below
      }
    }

    if (!object) {
      var notFound = await env.R2.get(CONFIG.prefix + "/404.html");
      if (notFound) {
        return new Response(notFound.body, {
          status: 404,
          headers: {
            "Content-Type": CONFIG.contentTypes.html,
            "Cache-Control": CONFIG.notFoundCacheControl,
            "X-Powered-By": CONFIG.poweredBy,
          },
        });
      }
      return new Response("Not Found", { status: 404, headers: { "Content-Type": CONFIG.contentTypes.txt } });
    }

    var ext = extensionOf(path);
    var headers = {
      "Content-Type": CONFIG.contentTypes[ext] || CONFIG.defaultContentType,
      "Cache-Control": ext === "html" ? CONFIG.htmlCacheControl : CONFIG.assetCacheControl,
      "X-Powered-By": CONFIG.poweredBy,
      "X-Site-Id": CONFIG.siteId,
    };
    if (newAssignment) {
      headers["Set-Cookie"] = cookieName(route) + "=" + variantKey +
        "; Path=/; Max-Age=" + CONFIG.cookieMaxAge + "; SameSite=Lax";
    }

    if (ext !== "html") return new Response(object.body, { headers: headers });

    var html = await object.text();
    if (variantKey) {
      html = html.replace("<head>", function () {
        return '<head><meta name="x-variant" content="' + escapeHtml(variantKey) + '">\n';
      });
    }
    html = applyEdgeRules(html, url, request);
    html = html.replace("</body>", function () { return CONFIG.popupScript + "\n</body>"; });
    return new Response(html, { headers: headers });
  },
};
"""


def _worker_settings(config: WorkerConfig) -> Dict[str, Any]:
    return {
        "prefix": config.r2_bucket_binding,
        "siteId": config.site_id,
        "fallbackOrigin": config.fallback_origin,
        "indexSlug": INDEX_SLUG,
        "variantDirPrefix": VARIANT_DIR_PREFIX,
        "cookiePrefix": AB_COOKIE_PREFIX,
        "cookieMaxAge": AB_COOKIE_MAX_AGE,
        "experiments": [
            {
                "route": experiment.route_key,
                "controlKeys": experiment.control_keys,
                "variants": [{"key": v.key, "weight": v.weight} for v in experiment.variants],
            }
            for experiment in config.experiments
        ],
        "edgeRules": [rule.model_dump() for rule in config.edge_rules],
        "utmKeys": list(UTM_KEYS),
        "contentTypes": CONTENT_TYPES,
        "defaultContentType": DEFAULT_CONTENT_TYPE,
        "htmlCacheControl": HTML_CACHE_CONTROL,
        "assetCacheControl": ASSET_CACHE_CONTROL,
        "notFoundCacheControl": NOT_FOUND_CACHE_CONTROL,
        "poweredBy": POWERED_BY,
        "popupScript": popup_loader_script(config.popup_endpoint, config.site_id),
    }


def _comment_safe(value: str) -> str:
    return " ".join(value.split())


def get_worker_script(config: WorkerConfig) -> str:
    """Return the worker source for *config*.

    The output depends only on *config*: generating twice yields identical
    scripts.
    """
    # "</" keeps the embedded popup markup from closing a host <script>
    settings = json.dumps(_worker_settings(config), indent=2).replace("</", "<\\/")
    return (
        _SCRIPT
        .replace("__SITE_ID__", _comment_safe(config.site_id))
        .replace("__PREFIX__", _comment_safe(config.r2_bucket_binding))
        .replace(_CONFIG_PLACEHOLDER, settings)
    )
