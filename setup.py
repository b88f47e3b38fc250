import os
import re
from codecs import open

from setuptools import find_packages
from setuptools import setup

# Based on https://github.com/pypa/sampleproject/blob/main/setup.py
# and https://python-packaging-user-guide.readthedocs.org/

here = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()
long_description_content_type = "text/markdown"

with open(os.path.join(here, "certfixtures/version.py")) as f:
    match = re.search(r'VERSION = "(.+?)"', f.read())
    assert match
    VERSION = match.group(1)

setup(
    name="certfixtures",
    version=VERSION,
    description="Generates the self-signed key/certificate fixtures used by TLS conformance tests.",
    long_description=long_description,
    long_description_content_type=long_description_content_type,
    license="ISC",
    classifiers=[
        "License :: OSI Approved :: ISC License (ISCL)",
        "Development Status :: 5 - Production/Stable",
        "Environment :: Console",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Security :: Cryptography",
        "Topic :: Software Development :: Testing",
    ],
    packages=find_packages(
        include=[
            "certfixtures",
            "certfixtures.*",
        ]
    ),
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "certfixtures = certfixtures.tools.main:main",
        ],
    },
    python_requires=">=3.10",
    # https://packaging.python.org/en/latest/discussions/install-requires-vs-requirements/#install-requires
    # It is not considered best practice to use install_requires to pin dependencies to specific versions.
    install_requires=[
        "click>=8.0,<9",
        "cryptography>=42.0",
        "pyOpenSSL>=23.2,<26",
        "ruamel.yaml>=0.17,<0.19",
    ],
    extras_require={
        "dev": [
            "pytest-cov>=2.7.1",
            "pytest-timeout>=1.3.3",
            "pytest>=7.0,<9",
        ],
    },
)
