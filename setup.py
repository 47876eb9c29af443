"""
Setup script for the seeded region growing package
"""
from setuptools import setup, find_packages
import sys

# Check Python version
if sys.version_info < (3, 9):
    sys.exit('Python >= 3.9 is required')

# Read README for long description
try:
    with open("README.md", "r", encoding="utf-8") as f:
        long_description = f.read()
except FileNotFoundError:
    long_description = ""

setup(
    name="rgmerge",
    version="0.1.0",
    description="Seeded region growing image segmentation with adaptive merging",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=("tests", "examples")),
    py_modules=["region_growing"],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.19.0",
        "pillow>=8.0.0",
        "tqdm>=4.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
        "examples": ["matplotlib>=3.3"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Image Processing",
    ],
)
