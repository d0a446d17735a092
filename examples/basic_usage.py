"""
plexaccess — Basic Usage Example

Provisions an app secret on first run, stores the Plex token encrypted,
binds a server and walks one user through the grant / revoke workflow.
"""

import shutil
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from plexaccess import (
    AssignedMedia,
    DecryptionError,
    NotFoundError,
    PlexPin,
    Server,
    Store,
    User,
    generate_secret,
)
from plexaccess.log import configure


def main():
    configure(verbose=True)
    data_dir = Path("./example-datastore")

    with Store.open(data_dir, verbose=True) as store:
        # First run: no secret yet, so create one
        if not store.load_secret():
            store.secret = generate_secret()
            store.save_secret(store.secret)
            print("Provisioned a new app secret")

        # Sign-in flow: pin is pending until the owner authorizes it
        store.save_plex_pin(PlexPin(id=1001, code="H7QK", client_identifier="example"))
        print(f"Pending pin: {store.get_plex_pin().code}")
        store.save_plex_token("example-plex-token")
        store.clear_plex_pin()

        store.save_plex_server(Server(name="Living Room", url="http://192.168.1.10:32400"))
        print(f"Bound server: {store.get_plex_server()}")

        # Grant media to two accounts
        store.save_users([
            User(
                plex_user_id="1234",
                name="alice",
                assigned_media=AssignedMedia(id="4821", title="Alien", status="unwatched"),
                is_friend=True,
            ),
            User(
                plex_user_id="5678",
                name="bob",
                assigned_media=AssignedMedia(id="4821", title="Alien", status="watching"),
            ),
        ])
        print(f"Users: {sorted(store.get_all_users())}")

        # Revoke bob
        bob = store.get_user("5678")
        bob.stopping_playback = True
        bob.revoke_access = True
        store.save_user(bob)
        store.delete_users(["5678"])

        try:
            store.get_user("5678")
        except NotFoundError:
            print("bob removed")

        print(f"Token decrypts: {store.get_plex_token() == 'example-plex-token'}")

        store.secret = generate_secret()
        try:
            store.get_plex_token()
            print("  ERROR: Should have failed!")
        except DecryptionError:
            print("Wrong secret rejected: token cannot be decrypted")

    shutil.rmtree(data_dir, ignore_errors=True)
    print("\nCleaned up example files.")


if __name__ == "__main__":
    main()
