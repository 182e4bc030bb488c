"""kws_twv_scorer - Term-Weighted Value scoring for keyword search"""

from setuptools import find_namespace_packages, setup

setup(
    name="kws_twv_scorer",
    version="1.0.0",
    description="Reference/hypothesis alignment and ATWV/STWV/MTWV/OTWV scoring for keyword search",
    packages=find_namespace_packages(include=["config", "config.*", "src", "src.*"]),
    package_data={
        "config": ["presets/*.yaml"],
    },
    install_requires=[
        "numpy>=1.26",
        "pyyaml",
        "rich",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Multimedia :: Sound/Audio :: Speech",
    ],
    entry_points={
        "console_scripts": [
            "kws-compute-atwv=src.tools.compute_atwv:main",
        ],
    },
)
