#!/usr/bin/env python3
import argparse

from nichecooc._defaults import DEFAULTS


def positive_int(value):
    try:
        ivalue = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not an integer")

    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue

def non_negative_int(value):
    try:
        ivalue = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not an integer")

    if ivalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative integer")
    return ivalue

def non_negative_float(value):
    try:
        fvalue = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not a valid float.")

    if fvalue < 0.0 or fvalue != fvalue or fvalue == float("inf"):
        raise argparse.ArgumentTypeError(f"{value} must be a finite non-negative number.")
    return fvalue

def unit_interval(value):
    try:
        value = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not a valid float.")

    if value < 0.0 or value > 1.0:
        raise argparse.ArgumentTypeError("Threshold must be between 0 and 1.")
    return value

def _normalise_tag(args):
    args.tag = f"{args.tag}_" if args.tag else ""

def parse_cli(argv=None):
    parser = argparse.ArgumentParser(
        prog="nichecooc",
        description="Co-occurrence networks and niche discovery for metagenomic abundance tables"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ----------------------------
    # DEMO SUBCOMMAND
    # ----------------------------
    demo_sub = subparsers.add_parser("demo", help="Write a synthetic abundance table and metadata.")

    req = demo_sub.add_argument_group("required arguments")
    req.add_argument(
        "--output_dir",
        required=True,
        help="Directory where output files will be saved.",
    )

    opt = demo_sub.add_argument_group("optional arguments")
    opt.add_argument(
        "--num_taxa",
        type=positive_int,
        default=20,
        help="Number of taxa (default: %(default)s)",
    )
    opt.add_argument(
        "--num_samples",
        type=positive_int,
        default=50,
        help="Number of samples (default: %(default)s)",
    )
    opt.add_argument(
        "--num_niches",
        type=positive_int,
        default=3,
        help="Number of planted niches (default: %(default)s)",
    )
    opt.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible tables (default: unseeded)",
    )
    opt.add_argument(
        "--tag",
        default="",
        help="Optional tag to prepend to output filenames for distinction.",
    )

    def demo_command(args):
        from nichecooc.pipelines import run_demo

        _normalise_tag(args)
        run_demo(args)

    demo_sub.set_defaults(func=demo_command)

    # ----------------------------
    # NICHE SUBCOMMAND
    # ----------------------------
    niche_sub = subparsers.add_parser(
        "niche",
        help="Run the full pipeline: normalisation, correlations, NMF niches, network and niche profiles.",
    )

    req = niche_sub.add_argument_group("required arguments")
    req.add_argument(
        "--abundance_table",
        required=True,
        help="Taxa x samples abundance table (TSV/CSV with taxa in the first column, or a pickled AbundanceTable).",
    )
    req.add_argument(
        "--output_dir",
        required=True,
        help="Directory where output files will be saved.",
    )

    opt = niche_sub.add_argument_group("optional arguments")
    opt.add_argument(
        "--metadata",
        default=None,
        help="Sample metadata TSV/CSV with a 'sample' column and optional 'habitat', 'host', 'location' columns.",
    )
    opt.add_argument(
        "--num_niches",
        type=non_negative_int,
        default=DEFAULTS["num_niches"],
        help="Number of niches; 0 picks it automatically from the NMF error curve (default: %(default)s)",
    )
    opt.add_argument(
        "--max_k",
        type=positive_int,
        default=DEFAULTS["max_k"],
        help="Largest number of niches tried when --num_niches is 0 (default: %(default)s)",
    )
    opt.add_argument(
        "--correlation_threshold",
        type=unit_interval,
        default=DEFAULTS["correlation_threshold"],
        help="Minimum |correlation| for a network edge (default: %(default)s)",
    )
    opt.add_argument(
        "--pvalue_threshold",
        type=unit_interval,
        default=DEFAULTS["pvalue_threshold"],
        help="Maximum permutation p-value for a network edge; 1 disables the filter (default: %(default)s)",
    )
    opt.add_argument(
        "--bootstrap_iterations",
        type=non_negative_int,
        default=DEFAULTS["bootstrap_iterations"],
        help="Permutation and bootstrap replicates (default: %(default)s)",
    )
    opt.add_argument(
        "--positive_only",
        dest="include_negative",
        action="store_false",
        help="Drop negative correlations from the network.",
    )
    opt.add_argument(
        "--pseudocount",
        type=non_negative_float,
        default=DEFAULTS["pseudocount"],
        help="Pseudocount added to every count before normalisation (default: %(default)s)",
    )
    opt.add_argument(
        "--max_iter",
        type=positive_int,
        default=DEFAULTS["nmf_max_iter"],
        help="Maximum NMF iterations (default: %(default)s)",
    )
    opt.add_argument(
        "--tol",
        type=non_negative_float,
        default=DEFAULTS["nmf_tol"],
        help="NMF convergence tolerance on the relative error change (default: %(default)s)",
    )
    opt.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible results (default: unseeded)",
    )
    opt.add_argument(
        "--progress",
        action="store_true",
        help="Show progress bars for the permutation and bootstrap loops.",
    )
    opt.add_argument(
        "--tag",
        default="",
        help="Optional tag to prepend to output filenames for distinction.",
    )

    def niche_command(args):
        from nichecooc.pipelines import run_niche_analysis

        _normalise_tag(args)
        run_niche_analysis(args)

    niche_sub.set_defaults(func=niche_command)

    # ----------------------------
    # PLOT SUBCOMMAND
    # ----------------------------
    plot_sub = subparsers.add_parser("plot", help="Plot a niche_profiles.tsv file.")

    req = plot_sub.add_argument_group("required arguments")
    req.add_argument(
        "--profiles_file",
        required=True,
        help="Niche profiles TSV written by 'nichecooc niche'.",
    )
    req.add_argument(
        "--output_dir",
        required=True,
        help="Directory where the plot will be saved.",
    )

    opt = plot_sub.add_argument_group("optional arguments")
    opt.add_argument(
        "--min_confidence",
        type=unit_interval,
        default=None,
        help="Draw a reference line at this confidence.",
    )
    opt.add_argument(
        "--tag",
        default="",
        help="Optional tag to prepend to output filenames for distinction.",
    )

    def plot_command(args):
        from nichecooc.plot import plot_niche_profiles

        _normalise_tag(args)
        plot_niche_profiles(
            profiles_file=args.profiles_file,
            output_dir=args.output_dir,
            tag=args.tag,
            min_confidence=args.min_confidence,
        )

    plot_sub.set_defaults(func=plot_command)

    # --------------
    # Parse & Dispatch
    # --------------
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    parse_cli()
