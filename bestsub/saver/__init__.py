"""Saving result files to a local output directory."""