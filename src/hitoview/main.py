import argparse
import asyncio
import logging
import os
import sys
import time
import traceback

from hitoview import __version__


# --- Global Exception Handler ---
def global_exception_handler(exc_type, exc_value, exc_traceback):
    """Logs any unhandled exception before the interpreter exits."""
    if issubclass(exc_type, KeyboardInterrupt):
        logging.info("Terminated by user.")
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    error_message_details = "".join(
        traceback.format_exception(exc_type, exc_value, exc_traceback)
    )
    logging.critical(f"Unhandled exception occurred:\n{error_message_details}")


def setup_logging(verbose: bool = False) -> None:
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)-8s - [%(name)s] - [%(filename)s:%(lineno)d] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    level = logging.DEBUG if verbose else logging.INFO

    if sys.stderr is not None:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    enable_file_logging_env = os.environ.get("HITOVIEW_ENABLE_FILE_LOGGING", "false")
    if enable_file_logging_env.lower() == "true":
        try:
            log_file_path = os.path.join(
                os.path.expanduser("~"), ".hitoview_logs", "hitoview.log"
            )
            os.makedirs(os.path.dirname(log_file_path), exist_ok=True)
            file_handler = logging.FileHandler(log_file_path, mode="a")
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            root_logger.addHandler(file_handler)
            root_logger.setLevel(logging.DEBUG)
            logging.info(f"File logging enabled: {log_file_path}")
        except OSError as e_file_log:
            logging.error(f"Failed to initialize file logging: {e_file_log}", exc_info=True)

    # --- Suppress verbose third-party loggers ---
    logging.getLogger("PIL").setLevel(logging.INFO)
    logging.getLogger("PIL.PngImagePlugin").setLevel(logging.INFO)
    logging.getLogger("PIL.Image").setLevel(logging.INFO)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    from hitoview.core.models import SortDirection, SortOption

    parser = argparse.ArgumentParser(
        prog="hitoview", description="Browse and categorize an image directory"
    )
    parser.add_argument("folder", nargs="?", default=".", help="Directory to open")
    parser.add_argument(
        "--sort",
        choices=[o.value for o in SortOption],
        default=SortOption.NAME.value,
    )
    parser.add_argument(
        "--direction",
        choices=[d.value for d in SortDirection],
        default=SortDirection.ASCENDING.value,
    )
    parser.add_argument("--category", help="Only show images in this category id")
    parser.add_argument("--name", help="Only show images whose name contains this")
    parser.add_argument("--config-file", default="", help="Custom config file path")
    parser.add_argument(
        "--pages", type=int, default=1, help="Number of batches to print"
    )
    parser.add_argument(
        "--clear-cache", action="store_true", help="Clear the image data cache first"
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=__version__)
    return parser


async def run(args) -> int:
    from hitoview.core.app_settings import (
        DEFAULT_IMAGE_DATA_CACHE_DIR,
        get_image_data_cache_size_bytes,
    )
    from hitoview.core.caching import ImageDataCache
    from hitoview.core.file_scanner import DirectoryScanError
    from hitoview.core.image_loader import ImageLoader
    from hitoview.core.models import FilterOptions, SortDirection, SortOption
    from hitoview.core.sorter import ThreadPoolSorter
    from hitoview.ui.app_controller import AppController

    cache = ImageDataCache(DEFAULT_IMAGE_DATA_CACHE_DIR, get_image_data_cache_size_bytes())
    if args.clear_cache:
        cache.clear()
    sorter = ThreadPoolSorter()
    controller = AppController(sorter=sorter, image_loader=ImageLoader(cache))
    try:
        try:
            await controller.open_directory(
                os.path.abspath(args.folder), args.config_file
            )
        except DirectoryScanError as e:
            logging.error(str(e))
            return 2

        await controller.set_sort_option(SortOption.from_string(args.sort))
        await controller.set_sort_direction(SortDirection.from_string(args.direction))
        if args.category or args.name:
            await controller.set_filter_options(
                FilterOptions(category_id=args.category, name_pattern=args.name)
            )
        for _ in range(max(args.pages, 1) - 1):
            if not await controller.extend_page():
                break

        model = controller.read_model()
        names = {c.id: c.name for c in model.categories}
        for directory in model.resolved_directories:
            print(f"[dir] {os.path.basename(directory.path)}")
        for image in model.current_page:
            tags = [names.get(a.category_id, a.category_id)
                    for a in model.image_categories.get(image.path, ())]
            suffix = f"  ({', '.join(tags)})" if tags else ""
            print(f"{os.path.basename(image.path)}{suffix}")
        print(
            f"-- {model.visible_count} of {len(model.resolved_images)} images shown"
        )
        return 0
    finally:
        sorter.shutdown()
        cache.close()


def main():
    args = build_parser().parse_args()
    setup_logging(args.verbose)
    sys.excepthook = global_exception_handler

    main_start_time = time.perf_counter()
    exit_code = asyncio.run(run(args))
    logging.debug(f"Finished in {time.perf_counter() - main_start_time:.4f}s")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
