"""
Command-line interface for top-albums.

This module implements the CLI using Click, providing every command for
building a Top 50 albums list, syncing it with Spotify and sharing it.
rich-click is used for the help output colors.

Commands:
    top50 search <query>                Search Spotify for albums
    top50 add <album>                   Add an album (ID, URL or URI)
    top50 remove <album|rank>           Remove an album
    top50 move <from> <to>              Reorder (manual mode, 1-based ranks)
    top50 sort [date|manual]            Sort by year / freeze manual order
    top50 show                          Print the list
    top50 clear                         Empty the list
    top50 share                         Print a share link (or text)
    top50 import <link|token>           Import a shared list
    top50 login / logout                Spotify account access
    top50 save                          Create or update the Top 50 playlist
    top50 load [playlist]               Replace the list from a playlist
    top50 playlists                     List Top 50 playlists on your account
    top50 backups list|create|restore|delete|cleanup
    top50 serve                         Run the token exchange gateway

Usage:
    top50 search "ok computer"
    top50 add 6dVIqQ8qmQ5GBnJ9shOYGE
    top50 sort manual
    top50 move 5 1
    top50 login
    top50 save

Configuration:
    The CLI reads config.yaml from the current directory (or --config),
    holding the public Spotify client ID, the gateway URL and the storage
    directory. The client secret only ever lives in the gateway's
    environment.
"""

import functools
import sys
import time
from pathlib import Path
from typing import Any, Callable

import rich_click as click
from tqdm import tqdm

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.COMMAND_GROUPS = {
    "cli": [
        {
            "name": "Your list",
            "commands": ["search", "add", "remove", "move", "sort", "show", "clear"],
        },
        {
            "name": "Sharing",
            "commands": ["share", "import"],
        },
        {
            "name": "Spotify",
            "commands": ["login", "logout", "save", "load", "playlists"],
        },
        {
            "name": "Maintenance",
            "commands": ["backups", "serve"],
        },
    ],
}

from top_albums import __version__
from top_albums.core import (
    Config,
    ConfigError,
    Database,
    DecodeError,
    NotAuthenticatedError,
    PlaylistLoadError,
    SpotifyError,
    StorageError,
    TopAlbumsError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from top_albums.core.config import DEFAULT_STORAGE_DIRECTORY
from top_albums.library import (
    Album,
    BackupManager,
    BackupSource,
    ListRepository,
    SortDirection,
    SortMode,
    TopList,
    build_playlist_link,
    build_share_url,
    decode_share_token,
    format_backup_age,
    format_share_text,
    parse_link,
    same_albums,
    summarize,
)
from top_albums.spotify import (
    AuthState,
    CatalogClient,
    ClientTokenCache,
    GatewayTokenSource,
    PlaylistMapper,
    SpotifyClient,
)
from top_albums.utils import extract_album_id, extract_auth_code, extract_playlist_id

logger = get_logger(__name__)


DEFAULT_SHARE_BASE_URL = "http://localhost:3000"


class AppContext:
    """
    Lazily-built application services for one CLI invocation.

    Nothing is loaded until a command asks for it, so `top50 --help`
    works without a config file. Logging is set up as soon as the
    configuration is loaded.
    """

    def __init__(self, config_path: Path | None, verbose: bool) -> None:
        self.config_path = config_path
        self.verbose = verbose
        self._config: Config | None = None
        self._database: Database | None = None
        self._repository: ListRepository | None = None
        self._token_source: GatewayTokenSource | None = None
        self._catalog: CatalogClient | None = None
        self._auth: AuthState | None = None
        self._mapper: PlaylistMapper | None = None
        self._logging_ready = False

    def setup_logging(self, storage_dir: Path) -> None:
        if not self._logging_ready:
            setup_logging(storage_dir, verbose=self.verbose)
            self._logging_ready = True

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = load_config(self.config_path)
            self._config.storage.directory.mkdir(parents=True, exist_ok=True)
            self.setup_logging(self._config.storage.directory)
            logger.debug(f"top-albums {__version__}, storage in {self._config.storage.directory}")
        return self._config

    @property
    def database(self) -> Database:
        if self._database is None:
            self._database = Database(self.config.storage.database_path)
        return self._database

    @property
    def repository(self) -> ListRepository:
        if self._repository is None:
            self._repository = ListRepository(self.database, BackupManager(self.database))
        return self._repository

    @property
    def backups(self) -> BackupManager:
        return self.repository.backups

    @property
    def token_source(self) -> GatewayTokenSource:
        if self._token_source is None:
            self._token_source = GatewayTokenSource(self.config.gateway.url, self.config.gateway.timeout)
        return self._token_source

    @property
    def catalog(self) -> CatalogClient:
        if self._catalog is None:
            token_cache = ClientTokenCache(self.token_source.fetch_client_token)
            self._catalog = CatalogClient(SpotifyClient.for_catalog(token_cache), market=self.config.spotify.market)
        return self._catalog

    @property
    def auth(self) -> AuthState:
        if self._auth is None:
            self._auth = AuthState(self.database, self.token_source)
            # The mapper holds the user's client, rebuild it on login/logout
            self._auth.subscribe(lambda state: self._drop_mapper())
        return self._auth

    def _drop_mapper(self) -> None:
        self._mapper = None

    @property
    def mapper(self) -> PlaylistMapper:
        if self._mapper is None:
            playlist = self.config.playlist
            self._mapper = PlaylistMapper(
                self.catalog,
                self.auth.user_client(),
                playlist_name=playlist.name,
                description=playlist.description,
                embed_metadata=playlist.embed_metadata,
            )
        return self._mapper

    def load_top_list(self) -> TopList:
        return self.repository.load_top_list()

    def save_top_list(self, top_list: TopList) -> None:
        self.repository.save_top_list(top_list)

    def close(self) -> None:
        if self._database is not None:
            self._database.close()
        if self._logging_ready:
            shutdown_logging()


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Turn application errors into a message and an exit code.

    Exit codes:
        1   configuration error, failed remote operation, bad input
        2   local store cannot be opened
        130 interrupted
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)

        except ConfigError as e:
            click.echo(f"Configuration error: {e.message}", err=True)
            sys.exit(1)

        except StorageError as e:
            click.echo(f"Storage error: {e.message}", err=True)
            logger.error(f"Storage error: {e.message}", exc_info=True)
            sys.exit(2)

        except NotAuthenticatedError as e:
            click.echo(f"Error: {e.message}", err=True)
            sys.exit(1)

        except SpotifyError as e:
            click.echo(f"Spotify error: {e.message}", err=True)
            if e.is_auth_error:
                click.echo("Check that the gateway is running, then try: top50 login", err=True)
            logger.error(f"Spotify error: {e.message}", exc_info=True)
            sys.exit(1)

        except TopAlbumsError as e:
            click.echo(f"Error: {e.message}", err=True)
            logger.error(f"Error: {e.message}")
            sys.exit(1)

        except KeyboardInterrupt:
            click.echo("\nInterrupted by user", err=True)
            sys.exit(130)

    return wrapper


def _print_albums(albums: list[Album]) -> None:
    for rank, album in enumerate(albums, start=1):
        year = album.year or "----"
        click.echo(f"{rank:>3}. {album.artist} - {album.title} ({year})  [{album.id}]")


def _describe_order(top_list: TopList) -> str:
    if top_list.sort_mode is SortMode.MANUAL:
        return "manual order"
    if top_list.sort_direction is SortDirection.DESC:
        return "by year, newest first"
    return "by year, oldest first"


def _confirm_replace(current: TopList, incoming: list[Album], yes: bool) -> bool:
    click.echo(f"Incoming: {summarize(incoming)}")
    click.echo(f"Current:  {summarize(current.albums)}")
    if yes or not current.albums:
        return True
    return click.confirm("Replace your current Top 50?", default=False)


def _replace_list(app: AppContext, albums: list[Album]) -> None:
    top_list = app.load_top_list()
    top_list.replace(albums)
    app.save_top_list(top_list)


def _album_id_argument(value: str) -> str:
    try:
        return extract_album_id(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="ALBUM")


# =============================================================================
# Command group
# =============================================================================

@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.yaml (default: ./config.yaml)"
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug messages on the console")
@click.version_option(__version__, prog_name="top50")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """
    [bold]top50[/bold] - build your Top 50 albums from Spotify.
    """
    app = AppContext(config_path, verbose)
    ctx.obj = app
    ctx.call_on_close(app.close)


# =============================================================================
# List commands
# =============================================================================

@cli.command()
@click.argument("query")
@click.option("--limit", default=20, show_default=True, type=click.IntRange(1, 50), help="Maximum results")
@click.pass_obj
@handle_errors
def search(app: AppContext, query: str, limit: int) -> None:
    """Search Spotify for albums."""
    result = app.catalog.search_albums(query, limit=limit)
    if result.failed:
        click.echo(f"Search failed: {result.error.message}", err=True)
        sys.exit(1)
    if not result.albums:
        click.echo("No albums found")
        return
    _print_albums(result.albums)


@cli.command()
@click.argument("album")
@click.pass_obj
@handle_errors
def add(app: AppContext, album: str) -> None:
    """Add an album by ID, Spotify URL or URI."""
    album_id = _album_id_argument(album)
    top_list = app.load_top_list()
    if any(existing.id == album_id for existing in top_list.albums):
        click.echo("This album is already in your Top 50")
        return

    record = app.catalog.get_album_by_id(album_id)
    if record is None:
        click.echo(f"Album not found on Spotify: {album_id}", err=True)
        sys.exit(1)

    outcome = top_list.add(record)
    if not outcome.added:
        click.echo(f"{record.display_name} is already in your Top 50")
        return

    app.save_top_list(top_list)
    click.echo(f"Added {record.display_name} ({outcome.size} albums)")
    if outcome.over_cap:
        click.echo(f"Your Top 50 now holds {outcome.size} albums, more than 50", err=True)


@cli.command()
@click.argument("album")
@click.pass_obj
@handle_errors
def remove(app: AppContext, album: str) -> None:
    """Remove an album by ID, URL or 1-based rank."""
    top_list = app.load_top_list()

    if album.isdigit() and 1 <= int(album) <= len(top_list):
        target = top_list.albums[int(album) - 1]
    else:
        album_id = _album_id_argument(album)
        target = next((a for a in top_list.albums if a.id == album_id), None)

    if target is None or not top_list.remove(target.id):
        click.echo("That album is not in your Top 50")
        return

    app.save_top_list(top_list)
    click.echo(f"Removed {target.display_name}")


@cli.command()
@click.argument("from_rank", type=int)
@click.argument("to_rank", type=int)
@click.pass_obj
@handle_errors
def move(app: AppContext, from_rank: int, to_rank: int) -> None:
    """Move the album at FROM_RANK to TO_RANK (manual mode only)."""
    top_list = app.load_top_list()
    try:
        top_list.move(from_rank - 1, to_rank - 1)
    except ValueError:
        click.echo("The list is sorted by year. Switch first with: top50 sort manual", err=True)
        sys.exit(1)
    except IndexError:
        click.echo(f"Ranks must be between 1 and {len(top_list)}", err=True)
        sys.exit(1)

    app.save_top_list(top_list)
    moved = top_list.albums[to_rank - 1]
    click.echo(f"Moved {moved.display_name} to #{to_rank}")


@cli.command()
@click.argument("mode", type=click.Choice(["date", "manual"]), default="date")
@click.pass_obj
@handle_errors
def sort(app: AppContext, mode: str) -> None:
    """
    Sort by year, or switch to manual order.

    Sorting by year again flips the direction.
    """
    top_list = app.load_top_list()
    if mode == "date":
        top_list.toggle_date_sort()
    elif not top_list.switch_to_manual():
        click.echo("Already in manual order")
        return

    app.save_top_list(top_list)
    click.echo(f"Sorted {_describe_order(top_list)}")


@cli.command()
@click.pass_obj
@handle_errors
def show(app: AppContext) -> None:
    """Print your Top 50."""
    top_list = app.load_top_list()
    if not top_list.albums:
        click.echo("Your Top 50 is empty. Start with: top50 search <query>")
        return

    click.echo(f"Top 50 ({len(top_list)} albums, {_describe_order(top_list)})")
    _print_albums(top_list.albums)
    if top_list.over_cap:
        click.echo(f"Warning: {len(top_list)} albums, more than 50", err=True)


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@handle_errors
def clear(app: AppContext, yes: bool) -> None:
    """Empty the list (a backup is kept)."""
    top_list = app.load_top_list()
    if not top_list.albums:
        click.echo("Your Top 50 is already empty")
        return
    if not yes and not click.confirm(f"Remove all {len(top_list)} albums?", default=False):
        click.echo("Cancelled")
        return

    app.backups.manual_backup(top_list.albums, f"Before clear - {len(top_list)} albums")
    top_list.clear()
    app.repository.clear()
    click.echo("Top 50 cleared")


# =============================================================================
# Sharing
# =============================================================================

@cli.command()
@click.option("--base-url", default=DEFAULT_SHARE_BASE_URL, show_default=True, help="App URL the link points to")
@click.option("--text", "as_text", is_flag=True, help="Print the list as plain text instead")
@click.option("--playlist", "as_playlist", is_flag=True, help="Link to your Spotify playlist instead")
@click.pass_obj
@handle_errors
def share(app: AppContext, base_url: str, as_text: bool, as_playlist: bool) -> None:
    """Print a link (or text) to share your Top 50."""
    if as_playlist:
        counterpart = app.mapper.find_existing_counterpart()
        if counterpart is None:
            click.echo("No Top 50 playlist on your account yet. Create it with: top50 save", err=True)
            sys.exit(1)
        click.echo(build_playlist_link(base_url, counterpart.id))
        return

    albums = app.load_top_list().albums
    if not albums:
        click.echo("Your Top 50 is empty, nothing to share", err=True)
        sys.exit(1)

    click.echo(format_share_text(albums) if as_text else build_share_url(base_url, albums))


@cli.command(name="import")
@click.argument("source")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@handle_errors
def import_(app: AppContext, source: str, yes: bool) -> None:
    """Import a shared list from a link or a bare token."""
    if "://" in source or "?" in source:
        intent = parse_link(source)
        if intent.error is not None:
            raise intent.error
        if intent.playlist_id is not None:
            click.echo(f"This link points to a Spotify playlist ({intent.playlist_id}).")
            click.echo(f"Load it with: top50 load {intent.playlist_id}")
            return
        if intent.shared_albums is None:
            raise DecodeError("This link carries no shared list")
        albums = intent.shared_albums
    else:
        albums = decode_share_token(source)

    if not albums:
        click.echo("The shared list is empty, nothing to import")
        return

    _print_albums(albums)
    current = app.load_top_list()
    if same_albums(current.albums, albums):
        click.echo("Your Top 50 already matches this list")
        return
    if not _confirm_replace(current, albums, yes):
        click.echo("Import cancelled")
        return

    app.backups.manual_backup(albums, f"Shared list - {len(albums)} albums", BackupSource.SHARED)
    _replace_list(app, albums)
    click.echo(f"Imported {len(albums)} albums")


# =============================================================================
# Spotify account
# =============================================================================

@cli.command()
@click.option("--code", default=None, help="Authorization code or redirect URL (skips the prompt)")
@click.pass_obj
@handle_errors
def login(app: AppContext, code: str | None) -> None:
    """Log in to Spotify to save and load playlists."""
    if code is None:
        url = AuthState.authorize_url(app.config.spotify.client_id, app.config.spotify.redirect_uri)
        click.echo("Open this URL, approve access, then paste the URL you are redirected to:")
        click.echo(url)
        code = click.prompt("Redirect URL")

    try:
        auth_code = extract_auth_code(code)
    except ValueError as e:
        click.echo(f"Login failed: {e}", err=True)
        sys.exit(1)

    app.auth.complete_login(auth_code)
    click.echo(f"Logged in as {app.auth.display_name}")

    counterpart = app.mapper.find_existing_counterpart()
    if counterpart is not None:
        click.echo(f"Found your playlist '{counterpart.name}' ({counterpart.total_tracks or 0} tracks)")


@cli.command()
@click.pass_obj
@handle_errors
def logout(app: AppContext) -> None:
    """Forget the stored Spotify login."""
    app.auth.reset()
    click.echo("Logged out")


@cli.command()
@click.pass_obj
@handle_errors
def save(app: AppContext) -> None:
    """Create or update your Top 50 playlist on Spotify."""
    albums = app.load_top_list().albums
    if not albums:
        click.echo("Your Top 50 is empty, nothing to save", err=True)
        sys.exit(1)
    if not app.auth.is_authenticated:
        raise NotAuthenticatedError("Log in to Spotify first (top50 login)")
    if not app.auth.verify():
        raise NotAuthenticatedError("Your Spotify session expired, log in again (top50 login)")

    with tqdm(total=len(albums), desc="Resolving tracks", unit="album") as progress:
        def on_album(album: Album, uri: str | None) -> None:
            progress.update(1)

        result = app.mapper.map_to_playlist(albums, on_album=on_album)

    verb = "Updated" if result.is_update else "Created"
    click.echo(f"{verb} '{result.playlist.name}' with {result.tracks_added} tracks")
    click.echo(result.playlist.url)
    skipped = len(albums) - result.tracks_added
    if skipped:
        click.echo(f"{skipped} album(s) had no playable track and were skipped", err=True)


@cli.command()
@click.argument("playlist", required=False)
@click.option("--from-metadata", is_flag=True, help="Rebuild from the description metadata instead of tracks")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@handle_errors
def load(app: AppContext, playlist: str | None, from_metadata: bool, yes: bool) -> None:
    """
    Replace your list with the albums of a Spotify playlist.

    Without PLAYLIST, your own Top 50 playlist is used. PLAYLIST may be an
    ID, a Spotify URL or a shared playlist link.
    """
    mapper = app.mapper

    if playlist is None:
        counterpart = mapper.find_existing_counterpart()
        if counterpart is None:
            click.echo("No Top 50 playlist on your account", err=True)
            sys.exit(1)
        playlist_id = counterpart.id
    else:
        intent = parse_link(playlist)
        try:
            playlist_id = intent.playlist_id or extract_playlist_id(playlist)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="PLAYLIST")

    if from_metadata:
        albums = mapper.decode_from_metadata(mapper.get_playlist(playlist_id))
        if not albums:
            raise PlaylistLoadError("This playlist has no readable Top 50 metadata", is_empty=True)
    else:
        albums = mapper.load_playlist(playlist_id)

    _print_albums(albums)
    current = app.load_top_list()
    if same_albums(current.albums, albums):
        click.echo("Your Top 50 already matches this playlist")
        return
    if not _confirm_replace(current, albums, yes):
        click.echo("Load cancelled")
        return

    app.backups.manual_backup(
        albums,
        f"Spotify playlist - {len(albums)} albums",
        BackupSource.REMOTE,
        playlist_id=playlist_id
    )
    _replace_list(app, albums)
    click.echo(f"Loaded {len(albums)} albums")


@cli.command()
@click.pass_obj
@handle_errors
def playlists(app: AppContext) -> None:
    """List the Top 50 playlists on your Spotify account."""
    found = app.mapper.list_app_playlists()
    if not found:
        click.echo("No Top 50 playlists found")
        return
    for entry in found:
        created = entry.metadata.created_at_datetime
        when = created.strftime("%d/%m/%y") if created else "unknown date"
        click.echo(f"{entry.playlist.name}  ({entry.album_count} albums, {when})  [{entry.playlist.id}]")


# =============================================================================
# Backups
# =============================================================================

@cli.group()
def backups() -> None:
    """Manage the backup history (last 10 snapshots)."""


@backups.command(name="list")
@click.pass_obj
@handle_errors
def backups_list(app: AppContext) -> None:
    """Show the backup history, most recent first."""
    entries = app.backups.list_backups()
    if not entries:
        click.echo("No backups yet")
        return
    now = int(time.time() * 1000)
    for entry in entries:
        age = format_backup_age(entry.timestamp, now)
        click.echo(f"{entry.id}  {age:<14} [{entry.source.value}]  {entry.description}")
        click.echo(f"    {summarize(list(entry.albums))}")


@backups.command(name="create")
@click.argument("description", required=False)
@click.pass_obj
@handle_errors
def backups_create(app: AppContext, description: str | None) -> None:
    """Snapshot the current list."""
    albums = app.load_top_list().albums
    backup_id = app.backups.manual_backup(albums, description or f"Manual backup - {len(albums)} albums")
    if backup_id is None:
        click.echo("Backup could not be written", err=True)
        sys.exit(1)
    click.echo(f"Created {backup_id}")


@backups.command(name="restore")
@click.argument("backup_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@handle_errors
def backups_restore(app: AppContext, backup_id: str, yes: bool) -> None:
    """Replace the list with a backup."""
    albums = app.backups.restore_backup(backup_id)
    if albums is None:
        click.echo(f"No backup with id {backup_id}", err=True)
        sys.exit(1)
    if not _confirm_replace(app.load_top_list(), albums, yes):
        click.echo("Restore cancelled")
        return
    _replace_list(app, albums)
    click.echo(f"Restored {len(albums)} albums")


@backups.command(name="delete")
@click.argument("backup_id")
@click.pass_obj
@handle_errors
def backups_delete(app: AppContext, backup_id: str) -> None:
    """Delete one backup."""
    if not app.backups.delete_backup(backup_id):
        click.echo(f"No backup with id {backup_id}", err=True)
        sys.exit(1)
    click.echo(f"Deleted {backup_id}")


@backups.command(name="cleanup")
@click.pass_obj
@handle_errors
def backups_cleanup(app: AppContext) -> None:
    """Drop automatic backups older than 24 hours."""
    removed = app.backups.cleanup_old_backups()
    click.echo(f"Removed {removed} backup(s)")


# =============================================================================
# Gateway
# =============================================================================

@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=5000, show_default=True, type=int)
@click.pass_obj
@handle_errors
def serve(app: AppContext, host: str, port: int) -> None:
    """
    Run the token exchange gateway.

    Reads SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET and SPOTIFY_REDIRECT_URI
    from the environment (or a .env file).
    """
    from top_albums.gateway import create_app

    try:
        storage_dir = app.config.storage.directory
    except ConfigError:
        # The gateway itself needs no config.yaml
        storage_dir = Path(DEFAULT_STORAGE_DIRECTORY).expanduser()
        storage_dir.mkdir(parents=True, exist_ok=True)
        app.setup_logging(storage_dir)

    logger.info(f"Token exchange gateway listening on http://{host}:{port}")
    create_app().run(host=host, port=port)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `top50` from the command line.
    It invokes the Click CLI group.
    """
    cli()


if __name__ == "__main__":
    main()
