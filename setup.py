import os

from setuptools import setup, find_packages

__version__ = "0.1"

tests_require = ['pytest', 'mypy', 'pycodestyle', 'click']

extras_require = {
    'cli': ['click'],
    'test': tests_require,
}


def read(fname):
    return open(os.path.join(os.path.dirname(__file__), fname)).read()


setup(
    name='python-melsec',
    version=__version__,
    description='Pure Python MC protocol client for MELSEC controllers',
    url='https://github.com/python-melsec/python-melsec',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={'melsec': ['py.typed']},
    license='MIT',
    long_description=read('README.rst'),
    entry_points={
        'console_scripts': [
            'melsec = melsec.__main__:main',
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Topic :: System :: Hardware",
        "Intended Audience :: Developers",
        "Intended Audience :: Manufacturing",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires='>=3.8',
    extras_require=extras_require,
)
