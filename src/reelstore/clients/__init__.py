from .tmdb import CatalogClient, CatalogError, DetailError, catalog_client

__all__ = ["CatalogClient", "CatalogError", "DetailError", "catalog_client"]
