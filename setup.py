from pathlib import Path
from setuptools import setup
from xlsbrd.info import __VERSION__

read_me = Path(__file__).parent / 'README.md'
long_description = read_me.read_text(encoding='utf-8')

setup(
    name='xlsbrd',
    version=__VERSION__,
    packages=['xlsbrd'],
    scripts=[
        'scripts/runxlsb.py',
    ],
    description=(
        'Library for developers to extract data from '
        'Microsoft Excel (tm) binary workbook (.xlsb) files'
    ),
    long_description=long_description,
    long_description_content_type='text/markdown',
    platforms=["Any platform -- don't need Windows"],
    license='BSD',
    keywords=['xlsb', 'biff12', 'excel', 'spreadsheet', 'workbook'],
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
        'Topic :: Database',
        'Topic :: Office/Business',
        'Topic :: Software Development :: Libraries :: Python Modules',
    ],
    python_requires=">=3.6",
    extras_require={
        'test': ['pytest'],
    },
)
