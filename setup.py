from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="gasflow",
    version="0.1.0",
    author="Ricardo",
    author_email="ricardo.reyes@eawag.ch",
    description="Gas pipeline network flow calculation and balancing",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.10',
    install_requires=[
        "pandas",
        "numpy",
        "matplotlib",
        "seaborn",
        "dynaconf",
        "pyyaml",
        "pint",
        "pint-pandas",
        "networkx",
        "joblib",
        "tqdm",
        "filelock",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "gasflow=gasflow.main:main",
            "gasflow-flows=gasflow.postprocess:show_flows"
        ],
    },
)
