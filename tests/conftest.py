import matplotlib

# No display during tests
matplotlib.use("Agg")
