"""Navigator Credentials Meta information.
   Navigator Credentials keeps integration secrets encrypted and scoped
   to organizations.
"""
__title__ = 'navigator_credentials'
__description__ = (
   'Navigator Credentials keeps integration secrets encrypted '
   'and scoped to organizations.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
