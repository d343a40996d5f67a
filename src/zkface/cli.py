import argparse
import asyncio
import json
import sys
from typing import List, Optional

import structlog

from . import config
from .capture import FaceCapture
from .data_models import MatchStatus
from .exceptions import ZkFaceError
from .logging_config import configure_logging
from .proving import ProofOrchestrator, SimulatedProvingBackend
from .session import MatchSession

# Initialize structured logger
logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_MATCHED = 2
EXIT_INTERRUPTED = 130


class ZkFaceCLI:
    """Main command-line interface for the zkface match protocol."""

    def __init__(self) -> None:
        self.parser = self._create_argument_parser()

    def _create_argument_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            prog="zkface",
            description="zkface - Zero-knowledge facial match protocol",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        parser.add_argument(
            "--log-level",
            default=None,
            help=f"Log level (default: {config.LOG_LEVEL}).",
        )
        parser.add_argument(
            "--json-logs",
            action="store_true",
            help="Emit structured JSON log lines.",
        )
        parser.add_argument(
            "--proof-delay",
            type=float,
            default=None,
            help="Latency of the simulated proving backend in seconds.",
        )

        subparsers = parser.add_subparsers(dest="command", required=True)
        self._add_match_command(subparsers)
        self._add_camera_command(subparsers)
        subparsers.add_parser("config", help="Print the active configuration.")

        return parser

    def _add_match_command(self, subparsers) -> None:
        """Add the 'match' command and its arguments."""
        match_parser = subparsers.add_parser(
            "match",
            help="Register a face from one image and recognize it in another.",
        )
        match_parser.add_argument("enroll_image", help="Image used for registration.")
        match_parser.add_argument("probe_image", help="Image used for recognition.")
        match_parser.add_argument(
            "--json",
            action="store_true",
            help="Print the recognition result as JSON.",
        )

    def _add_camera_command(self, subparsers) -> None:
        """Add the 'camera' command and its arguments."""
        camera_parser = subparsers.add_parser(
            "camera",
            help="Register from the webcam, scan, then recognize.",
        )
        camera_parser.add_argument(
            "--camera-index",
            type=int,
            default=None,
            help=f"OpenCV camera index (default: {config.CAMERA_INDEX}).",
        )
        camera_parser.add_argument(
            "--delay",
            type=float,
            default=3.0,
            help="Seconds of live scanning between registration and recognition.",
        )
        camera_parser.add_argument(
            "--snapshot",
            default=None,
            help="Write the last annotated frame to this path.",
        )

    def _create_session(self, args: argparse.Namespace, capture=None) -> MatchSession:
        backend = SimulatedProvingBackend(delay_seconds=args.proof_delay)
        return MatchSession(ProofOrchestrator(backend), capture=capture)

    async def _run_match(self, args: argparse.Namespace) -> MatchSession:
        from .detection import FaceRecognitionDetector, ImageFileFrameSource

        detector = FaceRecognitionDetector()
        enroll = FaceCapture(ImageFileFrameSource(args.enroll_image), detector)
        probe = FaceCapture(ImageFileFrameSource(args.probe_image), detector)

        session = self._create_session(args)
        await session.register_features(await enroll.capture_features())
        await session.recognize_features(await probe.capture_features())
        return session

    async def _run_camera(self, args: argparse.Namespace) -> MatchSession:
        from .detection import CameraFrameSource, FaceRecognitionDetector, save_frame

        detector = FaceRecognitionDetector(annotate=args.snapshot is not None)

        with CameraFrameSource(args.camera_index) as source:
            capture = FaceCapture(source, detector)
            async with self._create_session(args, capture) as session:
                print("Look at the camera to register your face...")
                await session.register()
                print(f"{session.status_message} (hash: {session.registered_hash})")

                await asyncio.sleep(args.delay)
                print(f"Live scan ticks: {session.scan_loop.tick_count}")

                print("Verifying face...")
                status = await session.recognize()
                self._display_result(session)
                if status is MatchStatus.MATCHED:
                    await session.wait_for_cooldown()

        if args.snapshot and detector.last_annotated_frame is not None:
            path = save_frame(args.snapshot, detector.last_annotated_frame)
            print(f"Snapshot saved to {path}")

        return session

    def _display_result(self, session: MatchSession) -> None:
        """Display a summary of the last recognition."""
        print("\n" + "=" * 60)
        print("ZKFACE - RECOGNITION RESULT")
        print("=" * 60)
        print(f"Status: {session.status_message}")
        print(f"Distance^2: {session.last_distance}")
        result = session.last_result
        if result is not None:
            print(f"Within threshold: {result.within_threshold}")
            print(f"Proof valid: {result.proof_valid}")
            print(f"Commitment matches: {result.commitment_matches}")
        print(f"Registered hash: {session.registered_hash}")
        print(f"Recognized hash: {session.recognized_hash}")
        print("=" * 60)

    def _exit_code(self, session: MatchSession) -> int:
        result = session.last_result
        if result is not None and result.matched:
            return EXIT_OK
        return EXIT_NOT_MATCHED

    def _execute_match_command(self, args: argparse.Namespace) -> int:
        session = asyncio.run(self._run_match(args))
        if args.json:
            print(json.dumps(session.last_result.to_dict(), indent=2))
        else:
            self._display_result(session)
        return self._exit_code(session)

    def _execute_camera_command(self, args: argparse.Namespace) -> int:
        session = asyncio.run(self._run_camera(args))
        return self._exit_code(session)

    def _execute_config_command(self, args: argparse.Namespace) -> int:
        print(json.dumps(config.get_config_summary(), indent=2))
        return EXIT_OK

    def run_from_args(self, args_list: Optional[List[str]] = None) -> int:
        """Run the CLI with provided arguments."""
        args = self.parser.parse_args(args_list)
        configure_logging(args.log_level, True if args.json_logs else None)

        commands = {
            "match": self._execute_match_command,
            "camera": self._execute_camera_command,
            "config": self._execute_config_command,
        }

        try:
            return commands[args.command](args)
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.", file=sys.stderr)
            return EXIT_INTERRUPTED
        except ZkFaceError as e:
            logger.error("A known application error occurred", **e.to_dict())
            print(f"\n[ERROR] {e}", file=sys.stderr)
            return EXIT_ERROR
        except Exception as e:
            logger.error(f"An unexpected fatal error occurred: {e}", exc_info=True)
            print(f"\n[FATAL ERROR] {e}", file=sys.stderr)
            return EXIT_ERROR


def main() -> int:
    """Main entry point for the CLI."""
    cli = ZkFaceCLI()
    return cli.run_from_args()


if __name__ == "__main__":
    sys.exit(main())
