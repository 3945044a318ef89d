"""Pipeline stages: trigger evaluation, setup, build and the runner tying them together."""
