"""Fixity - command-line front end for fixity_core."""
