"""Reflex configuration for the data table demo app."""

import reflex as rx

config = rx.Config(
    app_name="datatable_demo",
    plugins=[rx.plugins.SitemapPlugin()],
)
