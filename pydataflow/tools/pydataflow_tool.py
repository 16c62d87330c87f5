import argparse
import sys

from path import Path

from pydataflow.dominators import DominatorSolver
from pydataflow.errors import IRReadError, PreconditionError
from pydataflow.liveness import LivenessSolver
from pydataflow.llvm_reader import read_functions
from pydataflow.printer import dominators_str, function_header, liveness_str

real_print = print
iprint = real_print
eprint = lambda *args, **kwargs: real_print(*args, file=sys.stderr, **kwargs)


def real_main(args) -> int:
    try:
        cfgs = read_functions(Path(args.ir).read_bytes())
    except (OSError, IRReadError) as e:
        eprint(f"Error reading IR file: {args.ir}")
        eprint(f"{args.prog}: {e}")
        return 1
    for cfg in cfgs:
        if args.function and cfg.name not in args.function:
            continue
        iprint(function_header(cfg))
        try:
            if args.analysis == "dom":
                dom = DominatorSolver(max_sweeps=args.max_sweeps).compute(cfg)
                iprint(dominators_str(cfg, dom, color=args.color), end="")
            else:
                live = LivenessSolver(max_sweeps=args.max_sweeps).compute(cfg)
                iprint(
                    liveness_str(cfg, live, pretty=args.pretty, color=args.color),
                    end="",
                )
        except PreconditionError as e:
            eprint(f"{args.prog}: {cfg.name}: {e}")
            return 1
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Dominator sets or per-instruction liveness of every function "
        "in an LLVM IR file, both by fixed-point iteration"
    )
    parser.add_argument("ir", help="Input LLVM IR file (text/bitcode)", metavar="IR")
    parser.add_argument(
        "-a",
        "--analysis",
        required=True,
        choices=("dom", "liveout"),
        help="Choose an analysis",
    )
    parser.add_argument(
        "-f",
        "--function",
        action="append",
        help="Only analyze this function (repeatable)",
        metavar="FUNC",
    )
    parser.add_argument(
        "--color",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Color block names",
    )
    parser.add_argument(
        "-P",
        "--pretty",
        dest="pretty",
        help="Syntax highlight instructions",
        action="store_true",
    )
    parser.add_argument(
        "-M",
        "--max-sweeps",
        type=lambda x: int(x, 0),
        default=None,
        help="Fail if a solver has not converged after this many sweeps",
        metavar="N",
    )
    args = parser.parse_args(argv)
    args.prog = parser.prog
    return real_main(args)


if __name__ == "__main__":
    sys.exit(main())
