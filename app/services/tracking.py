"""Inline analytics beacon appended to deployed pages."""

from app.config import COLLECT_ENDPOINT
from app.services.edge import js_literal


def get_tracking_script(site_id: str, collect_endpoint: str = COLLECT_ENDPOINT) -> str:
    """Return a ``<script>`` that reports a page view and time-on-page.

    Events go out with ``navigator.sendBeacon`` so the beacon never delays
    navigation.  The session id lives in ``sessionStorage``.
    """
    return (
        "<script>\n"
        "(function(){\n"
        "  var sid=sessionStorage.getItem('_sp')||crypto.randomUUID();\n"
        "  sessionStorage.setItem('_sp',sid);\n"
        f"  var ep={js_literal(collect_endpoint or COLLECT_ENDPOINT)};\n"
        f"  var site={js_literal(site_id)};\n"
        "  function send(t,d){\n"
        "    try{navigator.sendBeacon(ep,JSON.stringify({s:site,sid:sid,t:t,p:location.pathname,r:document.referrer,d:d}))}catch(e){}\n"
        "  }\n"
        "  send('pv');\n"
        "  var st=Date.now();\n"
        "  document.addEventListener('visibilitychange',function(){\n"
        "    if(document.hidden)send('leave',{dur:Math.round((Date.now()-st)/1000)})\n"
        "  });\n"
        "})();\n"
        "</script>"
    )
