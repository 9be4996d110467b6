from setuptools import setup, find_packages
from os import path

here = path.abspath(path.dirname(__file__))

# Get the long description from the README file
with open(path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="tensorbranching",
    version="0.1.0",
    description=(
        "Refinement of tensor network contraction orders "
        "for branching maximum independent set solvers."
    ),
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="Apache",
    packages=find_packages(exclude=["docs", "tests", "examples"]),
    include_package_data=True,
    install_requires=[
        "autoray",
        "cytoolz",
        "networkx",
        "numpy",
        "opt_einsum",
        "tqdm",
    ],
    extras_require={
        "test": [
            "numpy",
            "pytest",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    keywords="tensor network contraction order tree decomposition mis",
)
