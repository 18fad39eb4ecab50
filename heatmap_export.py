"""
Heatmap viewer generator for the airspace simulation.

Produces a self-contained HTML file with a Leaflet map, leaflet.heat
overlays, track markers with tooltips and the transmission log. The same
template serves two modes:
- replay: frames recorded by HeatmapCollector are embedded and played back
- live: the page connects to server.py over WebSocket and draws pushed frames
"""

import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

from tracksim.feed import MessageLog

logger = logging.getLogger(__name__)


class HeatmapCollector:
    """Records simulation frames each tick and generates an HTML replay file."""

    def __init__(self, sim, every: int = 1, max_frames: int = 2000):
        self.sim = sim
        self.every = max(1, every)
        self.max_frames = max_frames
        self.frames = []
        self._seen_messages = 0

    # ------------------------------------------------------------------
    # Snapshot helpers
    # ------------------------------------------------------------------

    def _frame(self) -> dict:
        frame = self.sim.surface.to_dict()
        frame["tick"] = self.sim.tick_count
        frame["scenario"] = self.sim.scenario.name if self.sim.scenario else None
        frame["time"] = datetime.now().isoformat(timespec="milliseconds")

        # Only the messages that arrived since the previous frame
        log = self.sim.message_log.messages
        frame["messages"] = [m.to_dict() for m in log[self._seen_messages:]]
        self._seen_messages = len(log)
        return frame

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def snapshot_initial_state(self):
        self.frames.append(self._frame())

    def snapshot_tick(self, snapshot=None):
        """Record the current surface; usable directly as ``Simulation.on_tick``."""
        if self.sim.tick_count % self.every != 0:
            return
        if len(self.frames) >= self.max_frames:
            return
        self.frames.append(self._frame())

    def generate(self, output_path):
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        catalog = self.sim.catalog
        viewer_data = {
            "mode": "replay",
            "generated": datetime.now().isoformat(),
            "scenarios": catalog.names(),
            "bounds": [list(catalog.bounds[0]), list(catalog.bounds[1])],
            "min_zoom": catalog.min_zoom,
            "tick_ms": round(self.sim.interval * 1000 * self.every),
            "frames": self.frames,
        }
        html = render_viewer(viewer_data)
        output_path.write_text(html, encoding="utf-8")
        logger.info(
            f"Heatmap: {output_path} ({len(self.frames)} frames, "
            f"{output_path.stat().st_size // 1024} KB)"
        )
        return output_path


def render_viewer(viewer_data: dict) -> str:
    """Embed viewer data into the HTML template."""
    json_str = json.dumps(viewer_data, default=str).replace("</", "<\\/")
    return HTML_TEMPLATE.replace("/*__VIEWER_DATA__*/", json_str)


def live_viewer(catalog, ws_url: str = "", message_log: Optional[MessageLog] = None) -> str:
    """HTML for the live page served by the feed server.

    An empty ``ws_url`` makes the page connect back to the host it was loaded from.
    """
    viewer_data = {
        "mode": "live",
        "ws_url": ws_url,
        "scenarios": catalog.names(),
        "bounds": [list(catalog.bounds[0]), list(catalog.bounds[1])],
        "min_zoom": catalog.min_zoom,
        "frames": [],
        "messages": [m.to_dict() for m in message_log.messages] if message_log else [],
    }
    return render_viewer(viewer_data)


# ======================================================================
# Self-contained HTML template
# ======================================================================

HTML_TEMPLATE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Airspace Heatmap</title>
<link rel="stylesheet" href="https://fonts.googleapis.com/css2?family=JetBrains+Mono:wght@400;700;800&display=swap">
<link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css"
      integrity="sha256-p4NxAoJBhIIN+hmNHrzRCf9tD/miZyoHS5obTRR9BMY=" crossorigin=""/>
<script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"
        integrity="sha256-20nQCchB9co0qIjJZRGuk2/Z9VM+kNiyxNV1lvTlZBo=" crossorigin=""></script>
<script src="https://unpkg.com/leaflet.heat@0.2.0/dist/leaflet-heat.js"></script>
<style>
*{margin:0;padding:0;box-sizing:border-box}
body{font-family:'JetBrains Mono','Courier New','Consolas',monospace;background:#0a0a1a;color:#d0d0d0;overflow:hidden;height:100vh}

/* Header */
#header{position:fixed;top:0;left:0;right:0;z-index:1000;height:48px;background:#0f1729;border-bottom:1px solid #1e3a5f;display:flex;align-items:center;padding:0 16px;gap:10px}
.title{font-size:13px;font-weight:700;letter-spacing:2px;color:#7eb8da;text-transform:uppercase;white-space:nowrap}
.status-dot{width:10px;height:10px;border-radius:50%;background:#ff3b30;display:inline-block}
.status-dot.open{background:#34c759}.status-dot.connecting{background:#ffcc00}
.controls{display:flex;align-items:center;gap:5px}
.controls button{background:#1a2744;border:1px solid #2a4a6f;color:#7eb8da;width:30px;height:26px;cursor:pointer;border-radius:3px;font-size:12px}
.controls button:hover{background:#243654}
.controls button.active{background:#2a5a3f;border-color:#4CAF50}
#tick-slider{width:160px;accent-color:#2196F3;cursor:pointer}
#tick-num{font-size:12px;font-weight:600;color:#8899aa;min-width:70px;text-align:center}
.info{margin-left:auto;font-size:11px;color:#778;display:flex;gap:8px;align-items:center}
.info-pill{background:#1a2744;padding:2px 8px;border-radius:10px;border:1px solid #1e3a5f}

/* Scenario tabs */
#tabs{position:fixed;top:56px;left:50%;transform:translateX(-50%);z-index:1001;display:flex;gap:4px}
.tab{background:rgba(15,23,41,.9);border:1px solid #2a4a6f;color:#7eb8da;font-family:inherit;font-size:11px;padding:4px 10px;border-radius:3px;cursor:pointer;letter-spacing:1px}
.tab.active{background:#1e3a5f;color:#fff;border-color:#7eb8da}

/* Badge */
#sim-badge{position:fixed;bottom:14px;left:14px;z-index:1001;background:rgba(255,59,48,.85);color:#fff;font-size:11px;font-weight:800;letter-spacing:2px;padding:4px 10px;border-radius:3px}

/* Map */
#map{position:fixed;top:48px;left:0;right:340px;bottom:0}
.leaflet-container{background:#0a0a1a}
.leaflet-control-zoom a{background:#111d2e!important;color:#7eb8da!important;border-color:#1a2d45!important}
.leaflet-tile-pane{filter:brightness(.6) invert(1) contrast(3) hue-rotate(200deg) saturate(.3) brightness(.7)}
.fighter-jet-icon,.track-point-icon{background:transparent!important;border:none!important}

/* Transmission log */
#log{position:fixed;top:48px;right:0;bottom:0;width:340px;z-index:999;background:#0c1322;border-left:1px solid #1e3a5f;display:flex;flex-direction:column}
.log-label{font-size:10px;font-weight:700;letter-spacing:3px;text-transform:uppercase;padding:8px 12px;color:#7eb8da;border-bottom:1px solid #1e3a5f}
#log-list{flex:1;overflow-y:auto;padding:6px 10px}
#log-list::-webkit-scrollbar{width:4px}
#log-list::-webkit-scrollbar-thumb{background:rgba(255,255,255,.12);border-radius:3px}
.card{font-size:11px;line-height:1.45;padding:6px 8px;margin:4px 0;border-radius:3px;border-left:3px solid #778;background:rgba(255,255,255,.03);animation:cardIn .15s ease-out}
.card.positive{border-left-color:#34c759}.card.negative{border-left-color:#ff3b30}.card.neutral{border-left-color:#8899aa}
.card .who{font-weight:700;color:#ccddee}.card .enemy{color:#ff6b35}.card .why{color:#8899aa}
@keyframes cardIn{0%{opacity:0;transform:translateX(8px)}100%{opacity:1;transform:translateX(0)}}

/* Chat */
#chat{border-top:1px solid #1e3a5f;padding:6px 10px;max-height:38%;display:flex;flex-direction:column}
#chat-list{overflow-y:auto;flex:1;font-size:11px}
.chat-line{padding:2px 0}.chat-line.user{color:#7eb8da}.chat-line.assistant{color:#d0d0d0}
#chat-form{display:flex;gap:4px;margin-top:4px}
#chat-input{flex:1;background:#111d2e;border:1px solid #2a4a6f;color:#d0d0d0;font-family:inherit;font-size:11px;padding:4px 6px;border-radius:3px}
#chat-form button{background:#1a2744;border:1px solid #2a4a6f;color:#7eb8da;font-family:inherit;font-size:11px;padding:0 8px;border-radius:3px;cursor:pointer}
</style>
</head>
<body>

<div id="header">
  <span class="title">Airspace Heatmap</span>
  <span class="status-dot" id="status-dot" title="Not connected to server"></span>
  <div class="controls" id="replay-controls">
    <button id="play-btn" onclick="togglePlay()" title="Play / pause">&#9654;</button>
    <input type="range" id="tick-slider" min="0" max="0" value="0" oninput="showFrame(+this.value)">
    <span id="tick-num">Tick 0</span>
  </div>
  <div class="info">
    <span class="info-pill" id="track-count">0 tracks</span>
    <span class="info-pill" id="scenario-name">-</span>
  </div>
</div>

<div id="tabs"></div>
<div id="map"></div>
<div id="sim-badge">&#9888; SIMULATION ONLY</div>

<div id="log">
  <div class="log-label">Battlefield Updates</div>
  <div id="log-list"></div>
  <div id="chat">
    <div id="chat-list"></div>
    <form id="chat-form" onsubmit="sendChat(event)">
      <input id="chat-input" autocomplete="off" placeholder="Message command...">
      <button type="submit">Send</button>
    </form>
  </div>
</div>

<script>
var D = /*__VIEWER_DATA__*/;
var map, heatLayers = [], markers = {}, styleTags = {};
var frameIdx = 0, playing = false, timer = null, ws = null, shownMessages = {};

// ── Init ──
function init() {
  var b = D.bounds;
  map = L.map('map', {zoomControl:true, minZoom:D.min_zoom, maxBounds:b, maxBoundsViscosity:1.0})
         .setView([(b[0][0]+b[1][0])/2, (b[0][1]+b[1][1])/2], 8);
  L.tileLayer('https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png',{
    attribution:'&copy; OpenStreetMap', maxZoom:12}).addTo(map);

  drawTabs();
  (D.messages||[]).forEach(addMessage);

  map.whenReady(function(){
    if (D.mode === 'live') { connect(); return; }
    document.getElementById('tick-slider').max = Math.max(0, D.frames.length - 1);
    showFrame(0);
  });
  if (D.mode === 'live') document.getElementById('replay-controls').style.display = 'none';
}

// ── Scenario tabs ──
function drawTabs() {
  var tabs = document.getElementById('tabs');
  D.scenarios.forEach(function(name){
    var t = document.createElement('button');
    t.className = 'tab'; t.textContent = name; t.dataset.name = name;
    t.onclick = function(){ selectScenario(name); };
    tabs.appendChild(t);
  });
}

function markTab(name) {
  document.querySelectorAll('.tab').forEach(function(t){
    t.classList.toggle('active', t.dataset.name === name);
  });
  document.getElementById('scenario-name').textContent = name || '-';
}

function selectScenario(name) {
  if (D.mode === 'live') {
    if (ws && ws.readyState === 1) ws.send(JSON.stringify({type:'select_scenario', scenario:name}));
    return;
  }
  for (var i = 0; i < D.frames.length; i++) {
    if (D.frames[i].scenario === name) { showFrame(i); return; }
  }
}

// ── Frame drawing ──
function drawFrame(f) {
  // Heat: drop every overlay from the previous frame first
  heatLayers.forEach(function(h){ map.removeLayer(h); });
  heatLayers = [];
  (f.heat||[]).forEach(function(h){
    try {
      var o = h.options;
      var ly = L.heatLayer(h.points, {radius:o.radius, blur:o.blur, maxZoom:o.maxZoom,
                                      minOpacity:o.minOpacity, max:o.max, gradient:o.gradient});
      ly.addTo(map); heatLayers.push(ly);
    } catch (e) { console.error('Error creating heat layer', h.name, e); }
  });

  // Markers keyed by track id
  var seen = {};
  (f.markers||[]).forEach(function(m){
    seen[m.track_id] = true;
    var icon = L.divIcon({html:'<div style="transform:rotate('+m.rotation+'deg)">'+m.icon.html+'</div>',
                          className:m.icon.className, iconSize:m.icon.iconSize, iconAnchor:m.icon.iconAnchor});
    var mk = markers[m.track_id];
    if (mk) {
      mk.setLatLng([m.lat, m.lng]); mk.setIcon(icon); mk.setTooltipContent(m.tooltip);
    } else {
      mk = L.marker([m.lat, m.lng], {icon:icon})
            .bindTooltip(m.tooltip, {className:m.tooltip_class, direction:'top'}).addTo(map);
      markers[m.track_id] = mk;
    }
  });
  Object.keys(markers).forEach(function(id){
    if (!seen[id]) { map.removeLayer(markers[id]); delete markers[id]; }
  });

  // Scoped stylesheets
  var styles = f.styles || {};
  Object.keys(styleTags).forEach(function(owner){
    if (!(owner in styles)) { styleTags[owner].remove(); delete styleTags[owner]; }
  });
  Object.keys(styles).forEach(function(owner){
    if (!styleTags[owner]) {
      var s = document.createElement('style'); s.dataset.owner = owner;
      document.head.appendChild(s); styleTags[owner] = s;
    }
    styleTags[owner].textContent = styles[owner];
  });

  if (f.scenario && f.scenario !== document.getElementById('scenario-name').textContent) {
    map.setView(f.center, f.zoom);
    markTab(f.scenario);
  }
  document.getElementById('track-count').textContent = (f.markers||[]).length + ' tracks';
  (f.messages||[]).forEach(addMessage);
}

// ── Replay playback ──
function showFrame(i) {
  if (!D.frames.length) return;
  frameIdx = Math.max(0, Math.min(i, D.frames.length - 1));
  drawFrame(D.frames[frameIdx]);
  document.getElementById('tick-slider').value = frameIdx;
  document.getElementById('tick-num').textContent = 'Tick ' + D.frames[frameIdx].tick;
}

function togglePlay() {
  playing = !playing;
  var btn = document.getElementById('play-btn');
  btn.classList.toggle('active', playing);
  btn.innerHTML = playing ? '&#10074;&#10074;' : '&#9654;';
  if (playing) {
    timer = setInterval(function(){
      if (frameIdx >= D.frames.length - 1) { togglePlay(); return; }
      showFrame(frameIdx + 1);
    }, D.tick_ms || 100);
  } else { clearInterval(timer); }
}

// ── Transmission log ──
function esc(s) {
  return String(s == null ? '' : s).replace(/[&<>"']/g, function(c){
    return {'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}[c];
  });
}

function addMessage(m) {
  if (shownMessages[m.id]) return;
  shownMessages[m.id] = true;
  var enemy = m.enemy_type ? (m.enemy_callsign ? m.enemy_type + ':' + m.enemy_callsign : m.enemy_type) : '';
  var c = document.createElement('div');
  c.className = 'card ' + (m.category || 'neutral');
  c.innerHTML = '<span class="who">' + esc(m.call_sign) + ' (' + esc(m.vehicle) + ')</span> ' + esc(m.action) +
    (enemy ? ' <span class="enemy">&rarr; ' + esc(enemy) + '</span>' : '') +
    (m.explanation ? '<div class="why">' + esc(m.explanation) + '</div>' : '');
  var list = document.getElementById('log-list');
  list.appendChild(c); list.scrollTop = list.scrollHeight;
}

// ── Chat ──
function addChat(role, text) {
  var l = document.createElement('div');
  l.className = 'chat-line ' + role;
  l.textContent = (role === 'user' ? '> ' : '') + text;
  var list = document.getElementById('chat-list');
  list.appendChild(l); list.scrollTop = list.scrollHeight;
}

function sendChat(ev) {
  ev.preventDefault();
  var input = document.getElementById('chat-input');
  var text = input.value.trim();
  if (!text) return;
  addChat('user', text); input.value = '';
  if (ws && ws.readyState === 1) ws.send(JSON.stringify({type:'chat', text:text}));
  else addChat('assistant', 'Not connected to command. Replay mode only.');
}

// ── Live feed ──
function setStatus(s) {
  var dot = document.getElementById('status-dot');
  dot.className = 'status-dot ' + s;
  dot.title = s === 'open' ? 'Connected to server' : 'Not connected to server';
}

function connect() {
  var url = D.ws_url || ((location.protocol === 'https:' ? 'wss://' : 'ws://') + location.host + '/');
  setStatus('connecting');
  ws = new WebSocket(url);
  ws.onopen = function(){ setStatus('open'); ws.send(JSON.stringify({type:'ready'})); };
  ws.onerror = function(e){ console.error('WebSocket error', e); setStatus('error'); };
  ws.onclose = function(){ setStatus('closed'); };
  ws.onmessage = function(ev){
    var msg;
    try { msg = JSON.parse(ev.data); } catch (e) { console.error('Failed to parse message', e); return; }
    if (msg.type === 'frame' || msg.type === 'scenario_init') drawFrame(msg.frame);
    else if (msg.type === 'message') addMessage(msg);
    else if (msg.type === 'chat_reply') addChat('assistant', msg.text);
    else if (msg.type === 'error') console.error(msg.message);
  };
}

init();
</script>
</body>
</html>
"""
