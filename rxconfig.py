"""
crudtable — Reflex configuration.

Routes:
  /{table}  → one data-table page per table in crudtable.yaml
"""

import reflex as rx

config = rx.Config(
    app_name="crudtable",
    frontend_port=3000,
    backend_port=8000,
    telemetry_enabled=False,
    disable_plugins=["reflex.plugins.sitemap.SitemapPlugin"],
)
