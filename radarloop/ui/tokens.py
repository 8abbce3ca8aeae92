SPACING = {
    "sm": 8,
    "md": 16,
}

RADII = {
    "md": 12,
}

FONTS = {
    "base": '"Space Grotesk", "Segoe UI", sans-serif',
    "mono": '"IBM Plex Mono", "Consolas", monospace',
}

PALETTES = {
    "Dark": {
        "bg": "#0f1115",
        "surface": "#161920",
        "border": "#232834",
        "text": "#f4f7ff",
        "text2": "#9aa4b5",
        "progress_track": "#1c1c1c",
        "progress_bar": "#4682b4",
        "bad": "#ff7b7b",
    },
    "Light": {
        "bg": "#ffffff",
        "surface": "#f5f7fa",
        "border": "#d9dee7",
        "text": "#111418",
        "text2": "#4a5568",
        "progress_track": "#ffffff",
        "progress_bar": "#ccf2ff",
        "bad": "#c53030",
    },
}


def palette(map_style: str) -> dict:
    return PALETTES.get(map_style, PALETTES["Light"])
