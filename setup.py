from setuptools import setup, find_packages
from os.path import dirname, join
import io

with open('README.md', encoding='utf-8') as readme_file:
    readme = readme_file.read()

def get_version(relpath):
    """Read version info from a file without importing it."""
    for line in io.open(join(dirname(__file__), relpath), encoding="utf-8"):
        if line.startswith("__version__"):
            # Expect a plain string literal, e.g. __version__ = '0.1.0'
            return line.split("=")[1].strip().strip("'\"")

setup(
    name='nichecooc',
    version=get_version("nichecooc/__init__.py"),
    description='Compositional co-occurrence networks and latent niches from metagenomic abundance tables',
    long_description=readme,
    long_description_content_type='text/markdown',
    url="https://github.com/bcoltman/nichecooc",
    author='Ben Coltman',
    license='GPL3+',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Topic :: Scientific/Engineering',
        'Topic :: Scientific/Engineering :: Bio-Informatics',
        'License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)',
        'Programming Language :: Python :: 3',
    ],
    keywords="metagenomics co-occurrence niche NMF compositional bioinformatics",
    packages=find_packages(exclude=["tests", "tests.*"]),
    data_files=[(".", ["README.md"])],
    include_package_data=True,
    python_requires='>=3.9',
    install_requires=[
        'pandas>=1.0',
        'numpy>=1.17',
        'scipy>=1.0',
        'matplotlib>=3.0',
        'tqdm>=4.0',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'nichecooc = nichecooc.__main__:main'
        ]
    },
)
