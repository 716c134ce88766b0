"""Textual CSS themes for readmark."""

APP_CSS = """
/* ── Global ────────────────────────────────── */
Screen {
    background: $surface;
}

/* ── Reader Screen ─────────────────────────── */
#reader-header {
    dock: top;
    height: 1;
    background: $primary;
    color: $text;
    padding: 0 2;
    text-style: bold;
}

#content-text {
    height: 1fr;
    padding: 1 4;
    overflow: hidden;
}

#content-text.switching {
    color: $text-muted;
}

/* ── Loading indicator ─────────────────────── */
.loading-text {
    color: $warning;
    text-style: italic;
}
"""
