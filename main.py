"""SINGULARIS PRIME toolkit - command-line entry point.

Subcommands:
    serve    run the JSON bridge server
    parse    print the AST of a program as JSON
    compile  print bytecode (with governance checks)
    run      interpret a program and print its console output
    glyph    parse a G.L.Y.P.H. spell and print the UI config
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import warnings
from pathlib import Path

from singularis.bridge.server import BridgeCommandHandler, BridgeServer
from singularis.core.config import AppConfig
from singularis.core.experiment import RunRecord
from singularis.core.serialization import ProgramSerializer
from singularis.language.compiler import SingularisCompiler
from singularis.language.glyph import EXAMPLE_SPELL, generate_ui_config, parse_glyphic_spell
from singularis.language.interpreter import InterpreterError, execute_source
from singularis.language.nodes import ast_to_dicts
from singularis.language.parser import SingularisParser

logger = logging.getLogger("singularis")

# Filter matplotlib UserWarnings (tight_layout etc.)
warnings.filterwarnings("ignore", category=UserWarning, module="matplotlib")


def _read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    p = Path(path)
    if p.suffix == ProgramSerializer.FILE_EXTENSION:
        return ProgramSerializer.load(p).source
    return p.read_text(encoding="utf-8")


def _dump(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def cmd_serve(args, config: AppConfig) -> int:
    handler = BridgeCommandHandler(config)
    server = BridgeServer(handler, port=args.port or config.bridge_port, host=config.bridge_host)
    server.serve_forever()
    return 0


def cmd_parse(args, config: AppConfig) -> int:
    ast = SingularisParser().parse(_read_source(args.file))
    _dump(ast_to_dicts(ast))
    return 0


def cmd_compile(args, config: AppConfig) -> int:
    source = _read_source(args.file)
    result = SingularisCompiler().compile_with_checks(source)
    for d in result.errors + result.warnings:
        print(f"{d.severity}: [{d.kind}] {d.message} (line {d.line})", file=sys.stderr)
    for line in result.bytecode:
        print(line)
    if args.save:
        ProgramSerializer.save(source, args.save)
        logger.info("Saved program to %s", args.save)
    return 0 if result.success else 1


def cmd_run(args, config: AppConfig) -> int:
    source = _read_source(args.file)
    if args.direct:
        output = execute_source(source)
    else:
        seed = args.seed if args.seed is not None else config.seed
        try:
            record = RunRecord.from_run(source, seed=seed)
        except InterpreterError as e:
            print(f"Runtime error: {e}", file=sys.stderr)
            return 1
        output = record.output
        if args.record:
            record.save(args.record)
            logger.info("Run record written to %s", args.record)
    for line in output:
        print(line)
    return 0


def cmd_glyph(args, config: AppConfig) -> int:
    raw = _read_source(args.file) if args.file else EXAMPLE_SPELL
    spell = parse_glyphic_spell(raw)
    _dump({"spell": spell.to_dict(), "config": generate_ui_config(spell)})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="singularis", description="SINGULARIS PRIME toolkit")
    parser.add_argument("--log-level", default=None,
                        help="Override the configured log level (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("serve", help="Run the JSON bridge server")
    p.add_argument("--port", type=int, default=None)
    p.set_defaults(func=cmd_serve)

    p = sub.add_parser("parse", help="Print the AST as JSON")
    p.add_argument("file", help="Program file, .sgp file or '-' for stdin")
    p.set_defaults(func=cmd_parse)

    p = sub.add_parser("compile", help="Print bytecode after governance checks")
    p.add_argument("file")
    p.add_argument("--save", type=str, default=None, help="Also save as a .sgp program file")
    p.set_defaults(func=cmd_compile)

    p = sub.add_parser("run", help="Interpret a program")
    p.add_argument("file")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--direct", action="store_true",
                   help="Run the compiled bytecode log instead of the AST interpreter")
    p.add_argument("--record", type=str, default=None, help="Write a JSON run record")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("glyph", help="Parse a G.L.Y.P.H. spell")
    p.add_argument("file", nargs="?", default=None)
    p.set_defaults(func=cmd_glyph)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = AppConfig.load()
    logging.basicConfig(
        level=getattr(logging, (args.log_level or config.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args, config)


if __name__ == '__main__':
    sys.exit(main())
