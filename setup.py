"""
Setup script for scrna-recom package.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="scrna-recom",
    version="0.1.0",
    author="scrna-recom developers",
    description="Strategy dispatcher for single-cell RNA-seq dataset integration",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "pandas>=1.5.0",
        "numpy>=1.21.0",
        "scipy>=1.9.0",
        "matplotlib>=3.6.0",
        "seaborn>=0.12.0",
        "scanpy>=1.10.0",
        "anndata>=0.10.0",
        "scanorama>=1.7.0",
        "harmonypy>=0.0.9,<0.1",
        "umap-learn>=0.5.0",
        "leidenalg>=0.9.0",
        "igraph>=0.10.0",
    ],
    extras_require={
        "liger": [
            "pyliger>=0.2.0",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "black>=23.0",
            "flake8>=6.0",
            "mypy>=1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "scrna-recom=scrna_recom.cli:main",
        ],
    },
    include_package_data=True,
)
