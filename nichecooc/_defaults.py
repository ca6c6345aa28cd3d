# _defaults.py

DEFAULTS = {
    "pseudocount": 1.0,
    "correlation_iterations": 10,
    "exclusion_threshold": 0.1,
    "correlation_threshold": 0.3,
    "pvalue_threshold": 0.05,
    "include_negative": True,
    "bootstrap_iterations": 100,
    "num_niches": 0,
    "max_k": 8,
    "nmf_max_iter": 200,
    "nmf_tol": 1e-4,
    "max_cooccurring_taxa": 10,
    "max_habitats": 3,
}

# identifiers accepted for the sample column of a metadata file
SAMPLE_ID_COLUMNS = ["sample", "sampleId", "sample_id", "acc"]

METADATA_FIELDS = ["habitat", "host", "location"]

