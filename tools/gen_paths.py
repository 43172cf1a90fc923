"""
gen_paths.py - Shared output roots for generated sources and analysis dumps.
"""

GEN_ROOT = "gen"
ANALYSIS_ROOT = "gen/analysis"
