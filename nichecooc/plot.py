#!/usr/bin/env python3

import os
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

def plot_niche_profiles_obj(
    df: pd.DataFrame,
    out_file: str,
    min_confidence: float = None,
):
    """
    Two stacked panels, taxa sorted by primary niche then confidence:

        Panel 1: niche weights per taxon (stacked bars, one colour per niche)
        Panel 2: niche confidence per taxon, coloured by primary niche

    Required columns:
        taxon, primary_niche, niche_confidence, one "Niche <n>" column per niche
    """

    if df.empty:
        raise ValueError("DataFrame is empty: nothing to plot.")

    niche_cols = [c for c in df.columns if str(c).startswith("Niche ")]
    if not niche_cols:
        raise ValueError("No 'Niche <n>' weight columns found: nothing to plot.")

    df_sorted = df.sort_values(
        ["primary_niche", "niche_confidence"], ascending=[True, False]
    )
    x_idx = np.arange(len(df_sorted))
    cmap = plt.get_cmap("tab10")
    colours = [cmap(i % 10) for i in range(len(niche_cols))]

    fig, axes = plt.subplots(
        2, 1,
        figsize=(max(10, 0.3 * len(df_sorted)), 10),
        gridspec_kw={"height_ratios": [3, 2]},
        sharex=True,
    )

    # ============================================================
    # Panel 1: niche weights
    # ============================================================
    ax = axes[0]
    bottom = np.zeros(len(df_sorted))
    for col, colour in zip(niche_cols, colours):
        vals = df_sorted[col].to_numpy(dtype=float)
        ax.bar(x_idx, vals, bottom=bottom, color=colour, width=0.9, label=col)
        bottom += vals
    ax.set_ylim(0, 1)
    ax.set_ylabel("Niche weight", fontsize=14)
    ax.set_title("Niche Membership per Taxon", fontsize=16)
    ax.legend(loc="upper right", fontsize=10)

    # ============================================================
    # Panel 2: confidence
    # ============================================================
    ax = axes[1]
    primary = df_sorted["primary_niche"].to_numpy(dtype=int)
    ax.bar(
        x_idx,
        df_sorted["niche_confidence"].to_numpy(dtype=float),
        color=[colours[p % len(colours)] for p in primary],
        width=0.9,
    )
    if min_confidence is not None:
        ax.axhline(min_confidence, color="black", lw=1, linestyle="--",
                   label=f"confidence = {min_confidence}")
        ax.legend()
    ax.set_ylim(0, 1)
    ax.set_ylabel("Confidence", fontsize=14)
    ax.set_title("Niche Assignment Confidence", fontsize=16)
    ax.grid(True, axis="y", linestyle="--", alpha=0.6)

    ax.set_xticks(x_idx)
    ax.set_xticklabels(df_sorted["taxon"].astype(str), rotation=90, fontsize=8)
    ax.set_xlabel("Taxa (sorted by primary niche)", fontsize=14)

    # Save
    fig.tight_layout()
    fig.savefig(out_file, dpi=300, bbox_inches="tight")
    plt.close(fig)

    print(f"[plot_niche_profiles] Saved: {out_file}")


def plot_niche_profiles(
    profiles_file: str,
    output_dir: str,
    tag: str = "",
    min_confidence: float = None,
):
    if not os.path.exists(profiles_file):
        raise FileNotFoundError(profiles_file)

    os.makedirs(output_dir, exist_ok=True)

    df = pd.read_csv(profiles_file, sep="\t")
    out_file = os.path.join(output_dir, f"{tag}niche_profiles.png")

    plot_niche_profiles_obj(df, out_file, min_confidence=min_confidence)
