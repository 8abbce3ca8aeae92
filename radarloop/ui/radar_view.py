"""
Leaflet map surface for the radar page.

The radar loop adds, fades and removes overlay layers here; `render_html`
turns the current set into one Leaflet page for `components.html`. Every
frame's layer is on the map from the start (transparent until shown), and
the page steps through them itself with the configured delays, so the
iframe only has to be rebuilt when the frame window changes.
"""

import html
import itertools
import json
from dataclasses import dataclass

from radarloop.grid import EARTH_HALF_CIRCUMFERENCE, EDGE_EPSILON, TILE_SIZE
from radarloop.layers import MapSurface, MatrixTileSource, XyzTileSource
from radarloop.ui.tokens import FONTS, palette

LEAFLET_CDN = "https://unpkg.com/leaflet@1.9.4/dist"
MAP_HEIGHT_PX = 480
MIN_VIEW_ZOOM = 3
MAX_VIEW_ZOOM = 10

BASEMAPS = {
    "Light": {
        "url": "https://tile.openstreetmap.org/{z}/{x}/{y}.png",
        "maxZoom": 19,
        "subdomains": "abc",
        "attribution": "Base: OpenStreetMap",
    },
    "Dark": {
        "url": "https://{s}.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}{r}.png",
        "maxZoom": 20,
        "subdomains": "abcd",
        "attribution": "Base: OpenStreetMap, CARTO",
    },
}


@dataclass
class OverlayLayer:
    layer_id: str
    source: object
    opacity: float = 0.0


def source_spec(source) -> dict:
    """What the page needs to draw one frame's tiles."""
    if isinstance(source, MatrixTileSource):
        return {
            "kind": "matrix",
            "url": source.url_template(),
            "maxNativeZoom": source.max_native_zoom,
            "matrices": {
                str(zoom): {
                    "originX": m.origin_x,
                    "originY": m.origin_y,
                    "cols": m.cols,
                    "rows": m.rows,
                    "span": m.span,
                }
                for zoom, m in source.matrices.items()
            },
        }
    if isinstance(source, XyzTileSource):
        return {"kind": "xyz", "url": source.url_template, "maxNativeZoom": source.max_native_zoom}
    raise TypeError(f"Unsupported tile source: {source!r}")


class LeafletMapSurface(MapSurface):
    def __init__(self):
        self.layers: dict[int, OverlayLayer] = {}
        self._ids = itertools.count(1)

    def add_overlay_layer(self, layer_id: str, source) -> int:
        handle = next(self._ids)
        self.layers[handle] = OverlayLayer(layer_id, source)
        return handle

    def set_opacity(self, handle: int, value: float) -> None:
        layer = self.layers.get(handle)
        if layer is not None:
            layer.opacity = value

    def remove_overlay_layer(self, handle: int) -> None:
        self.layers.pop(handle, None)

    def clear(self) -> None:
        self.layers.clear()

    def scene(self, frames, config, provider_label: str = "", status_text: str = "") -> dict:
        """
        Page state for `frames`, a list of (frame_id, label) in playback order.

        Frames without a layer on the surface are left out. Playback starts
        at the frame whose layer is currently shown, or the newest one.
        """
        by_frame = {layer.layer_id: layer for layer in self.layers.values()}
        entries = []
        start_index = None
        for frame_id, label in frames:
            layer = by_frame.get(frame_id)
            if layer is None:
                continue
            if start_index is None and layer.opacity > 0:
                start_index = len(entries)
            entries.append({"id": frame_id, "label": label, "source": source_spec(layer.source)})
        if start_index is None:
            start_index = max(len(entries) - 1, 0)

        return {
            "center": [config.center_latitude, config.center_longitude],
            "zoom": config.zoom_level,
            "minZoom": MIN_VIEW_ZOOM,
            "maxZoom": MAX_VIEW_ZOOM,
            "basemap": BASEMAPS.get(config.map_style, BASEMAPS["Light"]),
            "showZoom": config.show_zoom,
            "showRecenter": config.show_recenter,
            "showScale": config.show_scale,
            "opacity": config.overlay_opacity,
            "frameDelay": config.frame_delay,
            "restartDelay": config.restart_delay,
            "frames": entries,
            "startIndex": start_index,
            "provider": provider_label,
            "status": status_text,
        }

    def render_html(self, frames, config, provider_label: str = "", status_text: str = "", height_px: int = MAP_HEIGHT_PX) -> str:
        scene = self.scene(frames, config, provider_label=provider_label, status_text=status_text)
        scene_json = json.dumps(scene).replace("</", "<\\/")
        colors = palette(config.map_style)
        return f"""
        <link rel="stylesheet" href="{LEAFLET_CDN}/leaflet.css" />
        <div id="radar-map" class="radar-map"></div>
        <div class="radar-progress-track"><div id="radar-progress" class="radar-progress-bar"></div></div>
        <div id="radar-label" class="radar-footer">{html.escape(status_text)}</div>
        <style>
          body {{ margin: 0; background: {colors["bg"]}; }}
          .radar-map {{
            height: {height_px}px;
            width: 100%;
            background: {colors["surface"]};
          }}
          .radar-progress-track {{ height: 8px; background: {colors["progress_track"]}; }}
          .radar-progress-bar {{ height: 8px; width: 0%; background: {colors["progress_bar"]}; }}
          .radar-footer {{
            font-family: {FONTS["base"]};
            font-size: 0.85rem;
            color: {colors["text2"]};
            padding: 2px 8px;
          }}
          .radar-recenter {{
            width: 30px;
            height: 30px;
            border: 2px solid rgba(0, 0, 0, 0.2);
            border-radius: 4px;
            background: #fff;
            cursor: pointer;
            font-size: 16px;
            line-height: 1;
          }}
        </style>
        <script src="{LEAFLET_CDN}/leaflet.js"></script>
        <script>
          (function() {{
            const scene = {scene_json};
            const H = {EARTH_HALF_CIRCUMFERENCE!r};
            const EDGE_EPSILON = {EDGE_EPSILON!r};
            const TILE = {TILE_SIZE};

            const map = L.map('radar-map', {{
              zoomControl: false,
              attributionControl: false,
              minZoom: scene.minZoom,
              maxZoom: scene.maxZoom
            }}).setView(scene.center, scene.zoom);

            L.tileLayer(scene.basemap.url, {{
              maxZoom: scene.basemap.maxZoom,
              subdomains: scene.basemap.subdomains
            }}).addTo(map);

            const attribution = L.control.attribution({{ position: 'bottomright' }});
            attribution.addTo(map);
            attribution.addAttribution(scene.basemap.attribution);
            if (scene.provider) {{
              attribution.addAttribution('Radar: ' + scene.provider);
            }}

            if (scene.showZoom) {{
              L.control.zoom({{ position: 'topright' }}).addTo(map);
            }}
            if (scene.showScale) {{
              L.control.scale({{ position: 'bottomleft' }}).addTo(map);
            }}
            if (scene.showRecenter) {{
              const recenter = {{
                render: function() {{
                  const button = L.DomUtil.create('button', 'radar-recenter');
                  button.type = 'button';
                  button.title = 'Recenter';
                  button.innerHTML = '&#8962;';
                  L.DomEvent.disableClickPropagation(button);
                  button.addEventListener('click', () => recenter.onActivate());
                  return button;
                }},
                onActivate: function() {{
                  map.setView(scene.center, scene.zoom);
                }}
              }};
              const RecenterControl = L.Control.extend({{ onAdd: () => recenter.render() }});
              new RecenterControl({{ position: 'bottomright' }}).addTo(map);
            }}
            L.circleMarker(scene.center, {{
              radius: 4,
              color: '#ffffff',
              weight: 1,
              fillColor: '#ff7b7b',
              fillOpacity: 1
            }}).addTo(map);

            map.createPane('radarPane');
            map.getPane('radarPane').style.zIndex = 360;

            const roundHalfUp = (value) => Math.floor(value + 0.5);
            const spanAt = (zoom) => (2 * H) / Math.pow(2, zoom);

            function placements(matrices, zoom, col, row) {{
              const matrix = matrices[String(zoom)];
              if (!matrix || matrix.cols <= 0 || matrix.rows <= 0) return [];
              const span = spanAt(zoom);
              const providerSpan = matrix.span || span;
              const minX = -H + col * span;
              const maxY = H - row * span;
              const firstCol = Math.max(0, Math.floor((minX - matrix.originX) / providerSpan));
              const lastCol = Math.min(matrix.cols - 1, Math.floor((minX + span - matrix.originX - EDGE_EPSILON) / providerSpan));
              const firstRow = Math.max(0, Math.floor((matrix.originY - maxY) / providerSpan));
              const lastRow = Math.min(matrix.rows - 1, Math.floor((matrix.originY - (maxY - span) - EDGE_EPSILON) / providerSpan));
              const size = roundHalfUp(providerSpan / span * TILE);
              const out = [];
              for (let r = firstRow; r <= lastRow; r++) {{
                for (let c = firstCol; c <= lastCol; c++) {{
                  out.push({{
                    col: c,
                    row: r,
                    left: roundHalfUp((matrix.originX + c * providerSpan - minX) / span * TILE),
                    top: roundHalfUp((maxY - (matrix.originY - r * providerSpan)) / span * TILE),
                    size: size
                  }});
                }}
              }}
              return out;
            }}

            function composeTile(source, zoom, col, row) {{
              const dz = Math.max(0, zoom - source.maxNativeZoom);
              const baseZoom = zoom - dz;
              const baseCol = col >> dz;
              const baseRow = row >> dz;
              const factor = Math.pow(2, dz);
              const shiftX = (col - (baseCol << dz)) * TILE;
              const shiftY = (row - (baseRow << dz)) * TILE;
              return placements(source.matrices, baseZoom, baseCol, baseRow)
                .map((p) => ({{
                  url: source.url
                    .replace('{{z}}', baseZoom)
                    .replace('{{row}}', p.row)
                    .replace('{{col}}', p.col),
                  left: p.left * factor - shiftX,
                  top: p.top * factor - shiftY,
                  size: p.size * factor
                }}))
                .filter((image) =>
                  image.left < TILE && image.top < TILE &&
                  image.left + image.size > 0 && image.top + image.size > 0);
            }}

            const MatrixLayer = L.GridLayer.extend({{
              createTile: function(coords, done) {{
                const tile = L.DomUtil.create('div', 'radar-tile');
                tile.style.overflow = 'hidden';
                const images = composeTile(this.options.source, coords.z, coords.x, coords.y);
                let pending = images.length;
                if (!pending) {{
                  setTimeout(() => done(null, tile), 0);
                  return tile;
                }}
                const settle = () => {{
                  pending -= 1;
                  if (pending === 0) done(null, tile);
                }};
                images.forEach((image) => {{
                  const img = L.DomUtil.create('img', '', tile);
                  img.alt = '';
                  img.crossOrigin = 'anonymous';
                  img.onload = settle;
                  img.onerror = settle;
                  img.style.position = 'absolute';
                  img.style.left = image.left + 'px';
                  img.style.top = image.top + 'px';
                  img.style.width = image.size + 'px';
                  img.style.height = image.size + 'px';
                  img.src = image.url;
                }});
                return tile;
              }}
            }});

            const layers = scene.frames.map((frame) => {{
              const options = {{
                opacity: 0,
                tileSize: TILE,
                maxZoom: scene.maxZoom,
                pane: 'radarPane'
              }};
              const layer = frame.source.kind === 'matrix'
                ? new MatrixLayer(Object.assign({{ source: frame.source }}, options))
                : L.tileLayer(frame.source.url, Object.assign({{ maxNativeZoom: frame.source.maxNativeZoom }}, options));
              return layer.addTo(map);
            }});

            const label = document.getElementById('radar-label');
            const progress = document.getElementById('radar-progress');
            let idx = Math.min(scene.startIndex, Math.max(layers.length - 1, 0));

            function show(frameIdx) {{
              layers.forEach((layer, j) => layer.setOpacity(j === frameIdx ? scene.opacity : 0));
              if (!layers.length) return;
              const frame = scene.frames[frameIdx];
              label.textContent = scene.provider ? frame.label + ' · ' + scene.provider : frame.label;
              progress.style.width = ((frameIdx + 1) / layers.length * 100) + '%';
            }}

            function schedule() {{
              const delay = idx === layers.length - 1 ? scene.restartDelay : scene.frameDelay;
              setTimeout(() => {{
                idx = (idx + 1) % layers.length;
                show(idx);
                schedule();
              }}, delay);
            }}

            show(idx);
            if (layers.length > 1) schedule();
          }})();
        </script>
        """
