'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''
import importlib.metadata
import os
import sys

# Add all additional cmd line arguments for the script
def pytest_addoption(parser):
    parser.addoption( "--config_file", action="store", default=None, help="Harness configuration in YAML or JSON format (defaults apply when omitted)" )

def pytest_metadata(metadata):
    """Add memaware version metadata for both console output and HTML report."""

    # Get version - try package metadata first, fallback to version.txt
    try:
        version = importlib.metadata.version('memaware')
    except importlib.metadata.PackageNotFoundError:
        # Fallback for development mode (running from cloned repo)
        try:
            version_file = os.path.join(os.path.dirname(__file__), "..", "version.txt")
            with open(version_file) as f:
                version = f.read().strip()
        except OSError as e:
            version = f"Unknown (Error: {e})"

    config_file = "Not specified"
    for i, arg in enumerate(sys.argv):
        if arg == "--config_file" and i + 1 < len(sys.argv):
            config_file = sys.argv[i + 1]
        elif arg.startswith("--config_file="):
            config_file = arg.split("=", 1)[1]

    metadata['memaware version'] = version
    metadata['Config File'] = config_file
