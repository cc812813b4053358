# Services package init
"""
Think Nest Backend — Services Layer
====================================

Business logic between the routes (HTTP) and the models (persistence).

Service Inventory:
    - AuthService: accounts, token issue/rotation, password reset and change
    - NoteService: note CRUD, filtering, pagination, toggles, stats
    - MailService (abstract): transactional email contract
    - SMTPMailService / ConsoleMailService: concrete transports

Services are stateless singletons that receive an AsyncSession per call,
so they can be unit-tested with a mocked session.
"""
