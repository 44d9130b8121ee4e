from setuptools import setup, find_packages

# Read the long description from README.md
try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = "clouddev - Provision a DigitalOcean droplet with Pulumi"

setup(
    name="clouddev",
    version="0.1.0",

    # Metadata
    description="clouddev - Provision a DigitalOcean droplet with Pulumi",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Packaging
    packages=find_packages(exclude=["tests", "tests.*"]),

    # Python version and platform support
    python_requires='>=3.8,<4.0',

    # Dependencies
    install_requires=[
        "pulumi>=3.0.0,<4.0.0",
        "pulumi-digitalocean>=4.0.0,<5.0.0",
        "colorama>=0.4.4,<1.0.0",
        "PyYAML>=5.4",
    ],

    # Optional dependencies (extras)
    extras_require={
        'test': [
            'pytest>=6.2.0',
        ],
        'dev': [
            'pytest>=6.2.0',
            'tox>=3.24.0',
            'mypy>=0.910',
            'black>=21.5b2',
        ],
    },

    # Entry points for CLI
    entry_points={
        "console_scripts": [
            "clouddev=clouddev.cli:main",
        ],
    },

    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Systems Administration",
        "Topic :: Utilities",
    ],

    keywords="infrastructure pulumi cli devops digitalocean droplet",
)
