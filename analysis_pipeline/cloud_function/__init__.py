"""Cloud Function entry points for the analysis pipeline."""
