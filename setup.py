from setuptools import setup, find_packages

# Read dependencies from requirements.txt
with open("requirements.txt") as f:
    install_requires = [line.strip() for line in f if line.strip() and not line.startswith("#")]

# Read version from version.txt
with open("version.txt") as f:
    version = f.read().strip()

setup(
    name="memaware",
    version=version,
    packages=["memaware"] + ["memaware." + pkg for pkg in find_packages(where="memaware")],
    package_dir={"memaware": "memaware"},
    package_data={"memaware": ["input/config_file/*.yaml"]},
    install_requires=install_requires,
    entry_points={
        "console_scripts": [
            "memaware=memaware.main:main",
        ],
    },
    include_package_data=True,
    description="Verification harness for runtime memory limit awareness inside Docker containers",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "Topic :: System :: Operating System Kernels :: Linux",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
    python_requires=">=3.9",
)
