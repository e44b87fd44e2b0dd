"""
Local group launcher for rendezvous testing.

Starts a store server and a group of workers with unified, color-coded output.
Workers join the group, print the name table, and shut down together.

Usage:
    # Three workers with a known group size
    python scripts/start_group.py --workers 3

    # Workers joining a group of unknown size
    python scripts/start_group.py --workers 3 --dynamic
"""

import asyncio
import argparse
import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional


# ANSI color codes
class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    MAGENTA = '\033[95m'
    CYAN = '\033[96m'
    RED = '\033[91m'
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'


class ServiceManager:
    """Manages the store and worker processes with unified output."""

    def __init__(self):
        self.processes = {}

    def _format_line(self, service: str, line: str, color: str) -> str:
        """Format a log line with color, timestamp, and service prefix."""
        ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        return f"{Colors.DIM}{ts}{Colors.RESET} {color}{service:10}{Colors.RESET} │ {line.rstrip()}"

    async def _stream_output(self, service: str, stream, color: str):
        """Stream output from a process with formatting."""
        while True:
            line = await stream.readline()
            if not line:
                break
            print(self._format_line(service, line.decode('utf-8', errors='replace'), color), flush=True)

    async def start_service(
        self,
        service: str,
        command: List[str],
        color: str,
        cwd: Optional[Path] = None
    ) -> asyncio.Task:
        """Start a process and return the task streaming its output."""
        print(f"{Colors.BOLD}{color}▶ Starting {service}...{Colors.RESET}")

        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd
        )
        self.processes[service] = process

        return asyncio.create_task(self._stream_output(service, process.stdout, color))

    async def stop(self, service: str):
        """Terminate a process, killing it if it does not exit."""
        process = self.processes.get(service)
        if process is None or process.returncode is not None:
            return

        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()

    async def stop_all(self):
        for service in list(self.processes):
            await self.stop(service)


async def main():
    parser = argparse.ArgumentParser(
        description="Start a store server and a local worker group"
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=3,
        help='Number of workers to start (default: 3)'
    )
    parser.add_argument(
        '--dynamic',
        action='store_true',
        help='Join without a known group size'
    )
    parser.add_argument(
        '--port',
        type=int,
        default=8000,
        help='Store server port (default: 8000)'
    )
    args = parser.parse_args()

    if args.workers < 1:
        print(f"{Colors.RED}Error: Must have at least 1 worker{Colors.RESET}")
        return 1

    project_root = Path(__file__).parent.parent
    db_path = os.path.join(tempfile.mkdtemp(), "rendezvous.db")
    store_url = f"http://127.0.0.1:{args.port}"
    prefix = f"run_{datetime.now().strftime('%Y%m%d%H%M%S')}"

    manager = ServiceManager()
    exit_code = 0

    try:
        await manager.start_service(
            "store",
            [sys.executable, "-m", "coordinator.server",
             "--host", "127.0.0.1", "--port", str(args.port), "--db-path", db_path],
            Colors.BLUE,
            cwd=project_root
        )

        # Give the server time to bind
        await asyncio.sleep(2.0)

        worker_colors = [Colors.GREEN, Colors.YELLOW, Colors.CYAN, Colors.MAGENTA]
        workers = []
        for i in range(args.workers):
            command = [
                sys.executable, "-m", "worker.agent",
                "--worker-id", str(i),
                "--worker-name", f"worker{i}",
                "--store-url", store_url,
                "--prefix", prefix,
            ]
            if not args.dynamic:
                command += ["--world-size", str(args.workers)]

            task = await manager.start_service(
                f"worker-{i}",
                command,
                worker_colors[i % len(worker_colors)],
                cwd=project_root
            )
            workers.append((f"worker-{i}", task))

        for service, task in workers:
            await task
            returncode = await manager.processes[service].wait()
            if returncode != 0:
                print(f"{Colors.RED}✗ {service} exited with {returncode}{Colors.RESET}")
                exit_code = 1

    finally:
        await manager.stop_all()

    print(f"{Colors.BOLD}{Colors.GREEN}✓ All services stopped{Colors.RESET}")
    return exit_code


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
