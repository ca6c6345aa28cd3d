#!/usr/bin/env python3
"""
pipelines.py

File-based pipelines for nichecooc.

    run_demo(args)
        Write a synthetic abundance table with a planted niche structure and a
        matching sample metadata file (one habitat per planted niche).

    run_niche_analysis(args)
        1. Load the abundance table (TSV/CSV/pickle) and optional metadata.
        2. Run analyze_niches() with the parameters found on args.
        3. Save correlations, NMF factors, network nodes/edges/stats and the
           niche profiles as TSV files in args.output_dir.
        4. Plot the niche profiles.

Output file names are prefixed with args.tag (already normalised by the CLI
to either "" or "<tag>_").
"""

import os

import numpy as np
import pandas as pd

from nichecooc.pantry import load_abundance_table, load_sample_metadata
from nichecooc.plot import plot_niche_profiles_obj


def _seeded_rng(seed):
    return np.random.default_rng(seed).random


def _save(df, output_dir, name, tag, index=False):
    output_path = os.path.join(output_dir, f"{tag}{name}.tsv")
    df.to_csv(output_path, sep="\t", index=index)
    print(f"Pipeline: {name} saved to {output_path}")
    return output_path


def run_demo(args):
    """
    Write a demo abundance table and metadata.

    Expected attributes in args:
      - output_dir, tag
      - num_taxa, num_samples, num_niches, seed
    """
    from nichecooc.synthetic import generate_demo_abundance_table

    os.makedirs(args.output_dir, exist_ok=True)

    table = generate_demo_abundance_table(
        num_taxa=args.num_taxa,
        num_samples=args.num_samples,
        num_niches=args.num_niches,
        rng=_seeded_rng(args.seed),
    )
    print(f"Pipeline: Generated {table!r} with {args.num_niches} planted niches.")

    table_path = _save(table.to_frame(), args.output_dir, "demo_abundance", args.tag, index=True)

    metadata_df = pd.DataFrame({
        "sample": table.samples,
        "habitat": [f"habitat_{s % args.num_niches + 1}" for s in range(table.n_samples)],
    })
    metadata_path = _save(metadata_df, args.output_dir, "demo_metadata", args.tag)

    return table_path, metadata_path


def run_niche_analysis(args):
    """
    Run the full niche analysis on files and save every result table.

    Expected attributes in args:
      - abundance_table, metadata (optional), output_dir, tag
      - num_niches, max_k, correlation_threshold, pvalue_threshold,
        bootstrap_iterations, include_negative, pseudocount,
        max_iter, tol, seed, progress
    """
    from nichecooc.niche import analyze_niches

    os.makedirs(args.output_dir, exist_ok=True)

    # Step 1. Load inputs.
    table = load_abundance_table(args.abundance_table)
    print(f"Pipeline: Loaded {table!r}.")
    metadata = load_sample_metadata(args.metadata, samples=table.samples) if args.metadata else None
    if metadata is not None:
        print(f"Pipeline: Loaded metadata for {len(metadata)} samples.")

    # Step 2. Analyse.
    result = analyze_niches(
        table,
        metadata=metadata,
        num_niches=args.num_niches,
        correlation_threshold=args.correlation_threshold,
        pvalue_threshold=args.pvalue_threshold,
        bootstrap_iterations=args.bootstrap_iterations,
        include_negative=args.include_negative,
        pseudocount=args.pseudocount,
        max_iter=args.max_iter,
        tol=args.tol,
        max_k=args.max_k,
        rng=_seeded_rng(args.seed),
        progress=args.progress,
    )
    nmf_result = result.nmf_result
    stats = result.network.stats
    print(
        f"Pipeline: {nmf_result.k} niches (NMF error {nmf_result.error:.4g}, "
        f"{nmf_result.n_iter} iterations, converged={nmf_result.converged})."
    )
    print(
        f"Pipeline: Network with {stats.node_count} nodes, {stats.edge_count} edges, "
        f"{stats.module_count} modules."
    )

    # Step 3. Save tables.
    taxa = table.taxa
    labels = result.network.niche_labels
    W_df = pd.DataFrame(nmf_result.W, index=pd.Index(taxa[:nmf_result.W.shape[0]], name="taxon"), columns=labels)
    H_df = pd.DataFrame(
        nmf_result.H,
        index=pd.Index(labels, name="niche"),
        columns=table.samples[:nmf_result.H.shape[1]],
    )
    nodes_df, edges_df = result.network.to_frames()
    stats_df = pd.DataFrame([{
        "node_count": stats.node_count,
        "edge_count": stats.edge_count,
        "density": stats.density,
        "positive_ratio": stats.positive_ratio,
        "module_count": stats.module_count,
        "num_niches": nmf_result.k,
        "nmf_error": nmf_result.error,
    }])

    profiles_df = result.profiles_frame()
    profiles_path = _save(profiles_df, args.output_dir, "niche_profiles", args.tag)
    _save(nodes_df, args.output_dir, "network_nodes", args.tag)
    _save(edges_df, args.output_dir, "network_edges", args.tag)
    _save(stats_df, args.output_dir, "network_stats", args.tag)
    _save(result.correlation_matrix.to_frame(), args.output_dir, "correlations", args.tag, index=True)
    _save(W_df, args.output_dir, "nmf_W", args.tag, index=True)
    _save(H_df, args.output_dir, "nmf_H", args.tag, index=True)

    # Step 4. Plot.
    if profiles_df.empty or not labels:
        print("Pipeline: No niche profiles to plot.")
    else:
        output_plot_file = os.path.join(args.output_dir, f"{args.tag}niche_profiles.png")
        plot_niche_profiles_obj(profiles_df, output_plot_file)
        print("Pipeline: Plotting complete.")

    return profiles_path
