# This should be only one line. If it must be multi-line, indent the second
# line onwards to keep the PKG-INFO file format intact.
"""Encrypt and decrypt a single secret using ssh RSA keys."""

from setuptools import find_packages, setup

version = open("src/sshvault/version.txt").read().strip()

setup(
    name="ssh-vault",
    version=version,
    install_requires=[
        "cryptography",
        "requests",
        "py", ],
    extras_require={
        "test": [
            "mock",
            "pytest",
            "pytest-cov",
            "pytest-instafail",
            "pytest-timeout", ]},
    entry_points="""
        [console_scripts]
            ssh-vault = sshvault.main:main
    """,
    license="BSD (2-clause)",
    keywords="ssh rsa encryption vault",
    classifiers="""\
License :: OSI Approved :: BSD License
Programming Language :: Python
Programming Language :: Python :: 3
Programming Language :: Python :: 3 :: Only
"""[:-1].split("\n"),
    description=__doc__.strip(),
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=find_packages("src"),
    package_dir={"": "src"},
    package_data={"sshvault": ["version.txt"]},
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.7")
