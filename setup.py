#!/usr/bin/env python
""" A Products REST API with a MongoDB-style JSON query engine over SqlAlchemy """

from setuptools import setup, find_packages

setup(
    name='docquery',
    version='1.0.0',

    license='BSD',
    description=__doc__,
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    keywords=['sqlalchemy', 'flask', 'mongodb', 'rest'],

    packages=find_packages(exclude=('tests', 'tests.*')),
    scripts=[],
    entry_points={
        'console_scripts': [
            'docquery = docquery.__main__:main',
        ],
    },

    python_requires='>= 3.8',
    install_requires=[
        'sqlalchemy >= 1.4',
        'flask >= 2.2',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-cov',
        ],
    },
    include_package_data=True,

    platforms='any',
    classifiers=[
        # https://pypi.python.org/pypi?%3Aaction=list_classifiers
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Natural Language :: English',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Framework :: Flask',
        'Topic :: Internet :: WWW/HTTP :: WSGI :: Application',
    ],
)
