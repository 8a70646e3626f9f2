import logging

from aws_housekeeping.errors import AWS_ERRORS, is_malformed_request

# delete_objects accepts at most this many keys per request
MAX_DELETE_BATCH = 1000
MAX_LIST_KEYS = 1000
MAX_LIST_UPLOADS = 1000


def chunk_objects(objects, size=MAX_DELETE_BATCH):
    """Split a list of object identifiers into sub-lists of at most `size` items."""
    return [objects[i:i + size] for i in range(0, len(objects), size)]


def object_identifier(entry):
    """Build a delete_objects identifier from a version or delete marker entry."""
    identifier = {'Key': entry['Key']}
    if entry.get('VersionId'):
        identifier['VersionId'] = entry['VersionId']
    return identifier


def delete_page_one_by_one(s3, bucket_name, objects):
    """Fallback for a failed batch: delete each object on its own and return the skip count."""
    total_skipped = 0

    for obj in objects:
        try:
            s3.delete_objects(Bucket=bucket_name, Delete={'Objects': [obj]})
        except AWS_ERRORS as e:
            logging.error(f"Skipping object due to repeated delete failure (Key={obj['Key']}, VersionId={obj.get('VersionId')}): {e}")
            total_skipped += 1

    if total_skipped > 0:
        logging.warning(f"Skipped {total_skipped} objects in bucket {bucket_name} due to repeated errors.")
    return total_skipped


def delete_page_batch(s3, bucket_name, objects):
    """Delete objects in sub-batches of up to 1000, falling back to one-by-one on failure."""
    if not objects:
        logging.info("No valid objects to delete in this batch.")
        return 0

    logging.info(f"Deleting {len(objects)} objects from {bucket_name} (batch delete).")

    skipped = 0
    for chunk in chunk_objects(objects):
        logging.info(f"   - Deleting chunk of {len(chunk)} objects...")
        try:
            response = s3.delete_objects(Bucket=bucket_name, Delete={'Objects': chunk})
            if response.get('Errors'):
                logging.error(f"Errors: {response['Errors']}")
        except AWS_ERRORS as e:
            if is_malformed_request(e):
                logging.warning("MalformedXML in this chunk. Deleting one-by-one...")
            else:
                logging.warning(f"Batch deletion failed for another reason: {e}")
            skipped += delete_page_one_by_one(s3, bucket_name, chunk)
    return skipped


def clear_multipart_uploads(s3, bucket_name):
    """Abort outstanding multipart uploads, which can also block bucket deletion."""
    logging.info(f"Checking for pending multipart uploads in bucket: {bucket_name}")
    aborted_count = 0
    markers = {}

    while True:
        try:
            result = s3.list_multipart_uploads(Bucket=bucket_name, MaxUploads=MAX_LIST_UPLOADS, **markers)
        except AWS_ERRORS as e:
            logging.warning(f"Failed to list multipart uploads in {bucket_name}: {e}")
            break

        for upload in result.get('Uploads', []):
            if not upload.get('Key') or not upload.get('UploadId'):
                continue
            try:
                s3.abort_multipart_upload(Bucket=bucket_name, Key=upload['Key'], UploadId=upload['UploadId'])
                aborted_count += 1
            except AWS_ERRORS as e:
                logging.error(f"Failed to abort multipart upload for Key={upload['Key']} UploadId={upload['UploadId']}: {e}")

        if not result.get('IsTruncated'):
            break
        markers = {}
        if result.get('NextKeyMarker'):
            markers['KeyMarker'] = result['NextKeyMarker']
        if result.get('NextUploadIdMarker'):
            markers['UploadIdMarker'] = result['NextUploadIdMarker']
        if not markers:
            break

    logging.info(f"Aborted {aborted_count} multipart uploads in {bucket_name}.")
    return aborted_count


def suspend_versioning(s3, bucket_name):
    logging.info(f"Disabling versioning on bucket: {bucket_name}")
    try:
        s3.put_bucket_versioning(Bucket=bucket_name, VersioningConfiguration={'Status': 'Suspended'})
    except AWS_ERRORS as e:
        logging.warning(f"Could not suspend versioning on {bucket_name}: {e}")


def clear_bucket_contents(s3, bucket_name):
    """Delete all object versions and delete markers, suspend versioning, abort multipart uploads."""
    logging.info(f"Clearing all objects from bucket: {bucket_name}")

    deleted_objects = 0
    markers = {}

    while True:
        try:
            page = s3.list_object_versions(Bucket=bucket_name, MaxKeys=MAX_LIST_KEYS, **markers)
        except AWS_ERRORS as e:
            logging.warning(f"Failed to list objects in {bucket_name}. Possibly no permission or bucket is gone: {e}")
            break

        objects_to_delete = [
            object_identifier(entry)
            for entry in page.get('Versions', []) + page.get('DeleteMarkers', [])
            if entry.get('Key')
        ]

        delete_page_batch(s3, bucket_name, objects_to_delete)
        deleted_objects += len(objects_to_delete)

        # the next page starts where this one left off; no markers means this was the last page
        markers = {}
        if page.get('NextKeyMarker'):
            markers['KeyMarker'] = page['NextKeyMarker']
        if page.get('NextVersionIdMarker'):
            markers['VersionIdMarker'] = page['NextVersionIdMarker']
        if not markers:
            break

    logging.info(f"Attempted to delete {deleted_objects} objects total in {bucket_name}.")

    suspend_versioning(s3, bucket_name)
    logging.info(f"Bucket {bucket_name} is now (presumably) empty and versioning is disabled.")

    clear_multipart_uploads(s3, bucket_name)
    return deleted_objects
