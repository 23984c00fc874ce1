from setuptools import setup, find_packages

setup(
    name="gesla-loader",
    version="0.2.0",
    description="GESLA-3 tide gauge data loading and quality-control filtering",
    author="RPA",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pandas>=2.0.0",
        "pyarrow>=14.0.1",  # For parquet export
        "numpy>=1.24.0",    # For numerical operations
        "pyyaml>=6.0.0",    # For YAML configuration files
        "scipy>=1.10.0",    # For nearest-station distances
    ],
    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'black>=23.0.0',
            'flake8>=6.0.0',
            'mypy>=1.0.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'gesla=gesla.cli:main',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Hydrology',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
)
