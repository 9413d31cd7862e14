"""
Deployment CLI
==============

Front end for deploying modules and inspecting their journals on disk.

COMMANDS:
- deploy:  Execute a module, resuming from its journal
- journal: Dump the journal of a module
- verify:  Check journal hash chain integrity

EXIT CODES:
- 0 success
- 1 definition, parameter, drift or journal error (nothing executed)
- 2 run finished with FAILED or BLOCKED actions
- 3 run cancelled (SIGINT); resumable

USAGE:
    deploykit deploy path/to/module.py --parameters params.json --resume
    python -m deploykit.cli verify MyModule --state-dir ./deployments
"""
import argparse
import importlib
import importlib.util
import logging
import os
import signal
import sys
from typing import Any, List, Optional

from .contracts.actions import Module
from .contracts.errors import DeploymentError
from .contracts.events import FailurePolicy, RunResult, RunStatus
from .engine import Deployer, DeployerConfig
from .execution.cancellation import CancellationToken
from .execution.engine import ExecutionConfig
from .execution.executor import Executor, SimulatedExecutor
from .execution.parameters import ParameterSource
from .journal.journal import ExecutionJournal
from .observability import ObservabilityConfig

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FAILED = 2
EXIT_CANCELLED = 3


# =============================================================================
# LOADING
# =============================================================================

def _import_target(spec: str):
    """Import 'pkg.mod', 'pkg.mod:attr', 'file.py' or 'file.py:attr'."""
    location, _, attr = spec.partition(":")
    if location.endswith(".py") or os.path.exists(location):
        if not os.path.exists(location):
            raise ValueError(f"No such file: {location}")
        name = os.path.splitext(os.path.basename(location))[0]
        file_spec = importlib.util.spec_from_file_location(name, location)
        source = importlib.util.module_from_spec(file_spec)
        file_spec.loader.exec_module(source)
    else:
        source = importlib.import_module(location)
    return source, attr


def load_module(spec: str) -> Module:
    """
    Load a Module declaration.

    The target may be a Module or a zero-argument callable returning one.
    Without an attribute, the first Module defined in the source is used.
    """
    source, attr = _import_target(spec)

    if attr:
        if not hasattr(source, attr):
            raise ValueError(f"{spec}: no attribute '{attr}'")
        target = getattr(source, attr)
        if callable(target) and not isinstance(target, Module):
            target = target()
        if not isinstance(target, Module):
            raise ValueError(f"{spec} is not a Module")
        return target

    for value in vars(source).values():
        if isinstance(value, Module):
            return value
    raise ValueError(f"{spec}: no Module found")


def load_executor(spec: Optional[str]) -> Executor:
    if not spec:
        return SimulatedExecutor()
    source, attr = _import_target(spec)
    if not attr:
        raise ValueError(f"Executor factory must be given as 'module:factory', got {spec}")
    executor = getattr(source, attr)()
    if not isinstance(executor, Executor):
        raise ValueError(f"{spec} did not return an Executor")
    return executor


# =============================================================================
# REPORTING
# =============================================================================

def print_status_table(result: RunResult) -> None:
    rows = result.status_table()
    width = max([len(action_id) for action_id, _, _ in rows] + [len("ACTION")])
    print(f"{'ACTION':<{width}} | {'STATUS':<9} | DETAIL")
    print("-" * (width + 32))
    for action_id, status, detail in rows:
        print(f"{action_id:<{width}} | {status:<9} | {detail}")


def _short(value: Any, limit: int = 60) -> str:
    text = repr(value)
    return text if len(text) <= limit else text[:limit - 3] + "..."


# =============================================================================
# COMMANDS
# =============================================================================

def _config(args, **kwargs) -> DeployerConfig:
    return DeployerConfig.from_env(state_dir=args.state_dir, network=args.network, **kwargs)


def cmd_deploy(args) -> int:
    """Deploy a module."""
    try:
        module = load_module(args.module)
        executor = load_executor(args.executor)
        parameters = (
            ParameterSource.from_file(args.parameters, module.name)
            if args.parameters else ParameterSource()
        )
        config = _config(
            args,
            execution=ExecutionConfig(
                max_workers=args.max_workers,
                action_timeout_seconds=args.timeout,
                failure_policy=FailurePolicy.HALT if args.halt_on_failure else FailurePolicy.CONTINUE,
                retry_failed_on_resume=args.retry_failed,
            ),
            observability=ObservabilityConfig(log_transitions=args.verbose),
        )
    except (OSError, ValueError, ImportError, DeploymentError) as e:
        print(f"[!] {e}")
        return EXIT_ERROR

    deployer = Deployer(executor, config)

    print(f"[*] Deploying {module.name} ({len(module)} actions) on {args.network}")

    token = CancellationToken()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel("interrupted"))
    try:
        result = deployer.deploy(module, parameters, resume=args.resume, cancellation=token)
    except DeploymentError as e:
        print(f"[!] {e}")
        return EXIT_ERROR
    finally:
        signal.signal(signal.SIGINT, previous)

    print_status_table(result)

    if result.status is RunStatus.CANCELLED:
        print("[!] Cancelled. Re-run with --resume to continue.")
        return EXIT_CANCELLED
    if result.status is RunStatus.FAILED:
        print(f"[!] Deployment failed: {result.executed_count} executed")
        return EXIT_FAILED
    if result.already_complete:
        print("[+] Already deployed. Nothing to do.")
    else:
        print(f"[+] Deployed {module.name}: {result.executed_count} executed")
    return EXIT_OK


def _open_existing(args) -> Optional[ExecutionJournal]:
    config = _config(args)
    if not config.journal.exists(args.module):
        print(f"[!] No journal for {args.module} at {config.journal.location_for(args.module)}")
        return None
    return Deployer(config=config).open_journal(args.module)


def cmd_journal(args) -> int:
    """Dump a journal."""
    try:
        journal = _open_existing(args)
    except DeploymentError as e:
        print(f"[!] {e}")
        return EXIT_ERROR
    if journal is None:
        return EXIT_ERROR

    print("SEQ | TIME                | STATUS  | ATTEMPT | HASH        | ACTION")
    print("-" * 80)
    for entry in journal.replay():
        record = entry.record
        print(
            f"{entry.sequence.value:<3} | {record.recorded_at.to_iso()[:19]:<19} | "
            f"{record.status.value:<7} | {record.attempt:<7} | "
            f"{record.content_hash[:8]}... | {record.action_id}"
        )
        if record.error:
            print(f"    error: {record.error.code.name}: {record.error.message}")
        elif record.result_value is not None:
            print(f"    result: {_short(record.result_value)}")
    return EXIT_OK


def cmd_verify(args) -> int:
    """Verify hash chain integrity."""
    print(f"[*] Verifying journal for {args.module} on {args.network}")
    try:
        journal = _open_existing(args)
    except DeploymentError as e:
        print(f"[FAIL] {e}")
        return EXIT_ERROR
    if journal is None:
        return EXIT_ERROR

    valid, message = journal.verify_integrity()
    if not valid:
        print(f"[FAIL] {message}")
        return EXIT_ERROR
    print(f"[PASS] Verified {len(journal)} entries. Integrity intact.")
    print(f"[INFO] HEAD Hash: {journal.state.head_hash}")
    return EXIT_OK


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--state-dir", default=None, help="State directory (default: $DEPLOYKIT_STATE_DIR or ./deployments)")
    common.add_argument("--network", default="default", help="Network name")
    common.add_argument("-v", "--verbose", action="store_true", help="Log every state transition")

    parser = argparse.ArgumentParser(prog="deploykit", description="Declarative deployment engine")
    subparsers = parser.add_subparsers(dest="command")

    deploy = subparsers.add_parser("deploy", parents=[common], help="Deploy a module")
    deploy.add_argument("module", help="path/to/file.py[:attr] or package.module[:attr]")
    deploy.add_argument("--parameters", help="JSON parameters file")
    deploy.add_argument("--resume", action="store_true", help="Continue an existing journal")
    deploy.add_argument("--executor", help="Executor factory as package.module:factory")
    deploy.add_argument("--max-workers", type=int, default=4)
    deploy.add_argument("--timeout", type=float, default=None, help="Per-action timeout in seconds")
    deploy.add_argument("--halt-on-failure", action="store_true", help="Stop scheduling after the first failure")
    deploy.add_argument("--retry-failed", action="store_true", help="Re-execute journaled failures")

    journal = subparsers.add_parser("journal", parents=[common], help="Dump a module journal")
    journal.add_argument("module", help="Module name")

    verify = subparsers.add_parser("verify", parents=[common], help="Verify journal integrity")
    verify.add_argument("module", help="Module name")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_ERROR

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "deploy":
        return cmd_deploy(args)
    if args.command == "journal":
        return cmd_journal(args)
    return cmd_verify(args)


if __name__ == "__main__":
    sys.exit(main())
