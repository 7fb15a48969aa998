import argparse
import logging
import sys
from typing import List, Optional

from mips_datapath.backend.schemes import MemoryAccessError, REGISTER_COUNT, WORD_SIZE_BYTES, pack_words
from mips_datapath.backend.instructions import InstructionFactory, reg_name
from mips_datapath.backend.assembler import AssemblerError, assemble_source
from mips_datapath.backend.loader import FileLoader, LoaderError
from mips_datapath.backend.cpu_model import CPUModel
from mips_datapath.backend.executor import Executor, HaltReason
from mips_datapath.config import ConfigError, SimulatorConfig, load_config

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CYCLE_LIMIT = 2


def configure_logging(trace: bool = False, raw: bool = False, stream=None):
    """Routes both simulator loggers to a plain stream handler."""
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    # No timestamps, just the message
    handler.setFormatter(logging.Formatter('%(message)s'))

    for name, enabled in (('mips.clean', trace), ('mips.raw', raw)):
        logger = logging.getLogger(name)
        logger.propagate = False
        logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(logging.INFO if enabled else logging.WARNING)


def format_registers(cpu: CPUModel, show_all: bool = False) -> str:
    lines = []
    for i in range(REGISTER_COUNT):
        value = cpu.registers.read(i)
        if value or show_all:
            lines.append(f"{reg_name(i):<6}(${i:02}) = 0x{value:08X} ({value})")
    return "\n".join(lines) if lines else "All registers are zero."


def format_memory(cpu: CPUModel, words: int) -> str:
    words = min(words, cpu.data_memory.size)
    return "\n".join(f"0x{i * WORD_SIZE_BYTES:08X}: 0x{cpu.data_memory.read_word(i):08X}"
                     for i in range(words))


def resolve_config(args) -> SimulatorConfig:
    config = load_config(args.config) if args.config else SimulatorConfig()
    little_endian = False if args.big_endian else None
    return config.override(data_words=args.data_words, max_cycles=args.max_cycles,
                           little_endian=little_endian)


def cmd_run(args) -> int:
    config = resolve_config(args)
    program = FileLoader.load_words(args.program, config.little_endian)
    data = None
    if args.data:
        data = FileLoader.load_words(args.data, config.little_endian, max_words=config.data_words)

    cpu = CPUModel(data_words=config.data_words)
    cpu.reset(program=program, initial_memory=data, entry_point=config.entry_point)
    result = Executor(cpu, max_cycles=config.max_cycles).run()

    print(str(result))
    if result.last_trace is not None:
        print(f"Last instruction: 0x{result.last_trace.pc:08X}: {result.last_trace.mnemonic}")
    if result.error is not None:
        print(f"  {result.error}")
    print(format_registers(cpu, show_all=args.all_registers))
    if args.dump_memory:
        print(format_memory(cpu, args.dump_memory))

    return EXIT_CYCLE_LIMIT if result.halt_reason == HaltReason.CYCLE_LIMIT else EXIT_OK


def cmd_asm(args) -> int:
    machine_code = assemble_source(FileLoader.load_text(args.source))
    if args.hex:
        output = "".join(f"{w:08X}\n" for w in machine_code).encode('ascii')
    else:
        output = pack_words(machine_code, not args.big_endian)
    with open(args.output, 'wb') as f:
        f.write(output)
    print(f"Wrote {len(machine_code)} words to {args.output}")
    return EXIT_OK


def cmd_disasm(args) -> int:
    words = FileLoader.load_words(args.image, not args.big_endian)
    for i, word in enumerate(words):
        pc = i * WORD_SIZE_BYTES
        print(f"0x{pc:08X}: {word:08X}  {InstructionFactory.disassemble(word, pc)}")
    return EXIT_OK


def cmd_gui(args) -> int:
    # nicegui is only imported when the debugger is requested
    from mips_datapath.main import run_gui
    run_gui(port=args.port, config=resolve_config(args))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    # Logging flags are accepted by every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--trace', action='store_true', help="Log every executed cycle")
    common.add_argument('--raw', action='store_true', help="Log raw instruction and image words")

    parser = argparse.ArgumentParser(prog="mips-datapath",
                                     description="Single-cycle MIPS datapath simulator")
    sub = parser.add_subparsers(dest='command', required=True)

    def add_config_args(p):
        p.add_argument('--config', help="JSON configuration file")
        p.add_argument('--data-words', type=int, help="Data memory size in words")
        p.add_argument('--max-cycles', type=int, help="Stop after this many cycles")
        p.add_argument('--big-endian', action='store_true', help="Binary images are big endian")

    run_p = sub.add_parser('run', parents=[common], help="Execute a program image")
    run_p.add_argument('program', help="Program image (.asm/.s, .hex/.txt or .bin)")
    run_p.add_argument('--data', help="Initial data memory image")
    run_p.add_argument('--dump-memory', type=int, default=0, metavar='N',
                       help="Print the first N data memory words after the run")
    run_p.add_argument('--all-registers', action='store_true', help="Print zero registers too")
    add_config_args(run_p)
    run_p.set_defaults(func=cmd_run)

    asm_p = sub.add_parser('asm', parents=[common], help="Assemble a source file")
    asm_p.add_argument('source', help="Input .asm or .s file")
    asm_p.add_argument('-o', '--output', default='program.bin', help="Output image file")
    asm_p.add_argument('--hex', action='store_true', help="Write a hex text image instead of binary")
    asm_p.add_argument('--big-endian', action='store_true', help="Write big endian words")
    asm_p.set_defaults(func=cmd_asm)

    dis_p = sub.add_parser('disasm', parents=[common], help="Disassemble an image")
    dis_p.add_argument('image', help="Program image")
    dis_p.add_argument('--big-endian', action='store_true', help="Binary image is big endian")
    dis_p.set_defaults(func=cmd_disasm)

    gui_p = sub.add_parser('gui', parents=[common], help="Start the browser step debugger")
    gui_p.add_argument('--port', type=int, default=8080)
    add_config_args(gui_p)
    gui_p.set_defaults(func=cmd_gui)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(trace=args.trace, raw=args.raw)
    try:
        return args.func(args)
    except (LoaderError, ConfigError, AssemblerError, MemoryAccessError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
