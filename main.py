import argparse
import logging
import os
import sys

import config


def _setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(), logging.FileHandler(config.LOG_FILE)],
    )


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Live broadcast test card")
    ap.add_argument("--port", type=int, default=config.WEB_PORT,
                    help="web remote port (default %(default)s)")
    ap.add_argument("--settings", default=config.SETTINGS_FILE,
                    help="settings document path (default %(default)s)")
    ap.add_argument("--windowed", action="store_true",
                    help=f"open a {config.WINDOWED_SIZE[0]}x{config.WINDOWED_SIZE[1]} window")
    ap.add_argument("--headless", action="store_true",
                    help="no window; serve the latest frame at /frame.png")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    _setup_logging(args.verbose)
    if args.windowed:
        config.FULLSCREEN = False
    if args.headless:
        os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

    # pygame is imported after SDL_VIDEODRIVER is settled
    import pygame
    import web_remote
    from app import TestCardApp, run_headless
    from renderer import FrameSlot
    from settings_store import SettingsService, SettingsStore

    service = SettingsService(SettingsStore(args.settings))

    if args.headless:
        pygame.init()
        slot = FrameSlot()
        web_remote.start(service, args.port, slot)
        try:
            run_headless(service, slot)
        except KeyboardInterrupt:
            pass
        return 0

    app = TestCardApp(service)
    web_remote.start(service, args.port,
                     frames_drawn=lambda: app.session.frames_drawn)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
