"""
Catalog main entry point.
Fetches the product list and loads stored preferences.
"""

import asyncio

from loguru import logger

from catalog.datastore.engine import close_db, init_db
from catalog.services import (
    AppError,
    FavoritesManager,
    LocalPersistenceStore,
    LoggingErrorReporter,
    RemoteDataClient,
    RetryPolicy,
    ServiceConfig,
)
from catalog.services.catalog import format_price, unique_categories
from catalog.settings import global_settings


async def main() -> None:
    """Main function"""
    logger.info("Starting catalog...")
    reporter = LoggingErrorReporter(max_reports=global_settings.error_history_size)

    try:
        # Initialize the database
        logger.info("Initializing database...")
        session_factory = await init_db()
        logger.info("Database initialized successfully")

        store = LocalPersistenceStore(
            session_factory,
            namespace=global_settings.storage_namespace,
            retry=RetryPolicy(
                max_retries=global_settings.storage_max_retries,
                base_delay=global_settings.storage_retry_delay,
            ),
        )
        favorites = FavoritesManager(store, reporter=reporter)
        await favorites.load()

        try:
            theme = await store.read_theme()
            logger.info(f"Theme preference: {theme.value}")
        except AppError as e:
            logger.warning(f"Theme unavailable, using default: {e.user_message}")

        async with RemoteDataClient(
            ServiceConfig.from_settings(global_settings), reporter=reporter
        ) as client:
            try:
                products = await client.fetch_products()
            except AppError as e:
                logger.error(f"Could not load products: {e.user_message}")
                return

            logger.info(
                f"Fetched {len(products)} products in "
                f"{len(unique_categories(products))} categories"
            )
            for product in products:
                marker = "*" if favorites.is_favorite(product.id) else " "
                logger.info(f"{marker} [{product.id}] {product.title} {format_price(product.price)}")

            logger.info(f"Service status: {client.get_service_status()}")

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    finally:
        logger.info("Closing database connections...")
        await close_db()

        if reporter.get_stats()["total_errors"]:
            logger.info(f"Error summary: {reporter.get_stats()['errors_by_type']}")
        logger.info("Catalog stopped")


if __name__ == "__main__":
    asyncio.run(main())
