"""File names inside a per-target run directory."""

LOG_FILE = "test_log.txt"
GENERATOR_OUTPUT_FILE = "generator_output.txt"
COUNTERS_FILE = "counters.csv"
SUMMARY_FILE = "summary.json"

ARTIFACT_FILES = (LOG_FILE, GENERATOR_OUTPUT_FILE, COUNTERS_FILE, SUMMARY_FILE)
