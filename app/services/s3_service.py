"""
File Storage Service
KYC documents and damage photos go to S3 when it is configured,
otherwise to the local uploads folder
"""

import io
import os
import uuid

import boto3
from botocore.exceptions import ClientError
from flask import current_app
from PIL import Image


CONTENT_TYPES = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'webp': 'image/webp',
    'pdf': 'application/pdf',
}


def file_extension(filename):
    return filename.rsplit('.', 1)[1].lower() if filename and '.' in filename else ''


class S3Service:
    """Service for handling S3 uploads"""

    @staticmethod
    def is_configured():
        return bool(current_app.config.get('AWS_ACCESS_KEY_ID') and current_app.config.get('S3_BUCKET_NAME'))

    @staticmethod
    def get_s3_client():
        """Get initialized S3 client"""
        return boto3.client(
            's3',
            aws_access_key_id=current_app.config.get('AWS_ACCESS_KEY_ID'),
            aws_secret_access_key=current_app.config.get('AWS_SECRET_ACCESS_KEY'),
            region_name=current_app.config.get('AWS_REGION', 'us-east-1')
        )

    @staticmethod
    def allowed_file(filename):
        """Check if file extension is allowed"""
        allowed_extensions = current_app.config.get('ALLOWED_EXTENSIONS',
                                                     {'png', 'jpg', 'jpeg', 'gif', 'webp'})
        return file_extension(filename) in allowed_extensions

    @staticmethod
    def compress_image(image_file, max_size=(1920, 1080), quality=85):
        """
        Compress and resize image

        Returns:
            Compressed JPEG as a BytesIO, or None when the file is not an image
        """
        try:
            img = Image.open(image_file)

            # Convert RGBA to RGB if necessary
            if img.mode in ('RGBA', 'LA', 'P'):
                background = Image.new('RGB', img.size, (255, 255, 255))
                if img.mode == 'P':
                    img = img.convert('RGBA')
                background.paste(img, mask=img.split()[-1] if img.mode == 'RGBA' else None)
                img = background

            img.thumbnail(max_size, Image.Resampling.LANCZOS)

            output = io.BytesIO()
            img.save(output, format='JPEG', quality=quality, optimize=True)
            output.seek(0)

            return output
        except Exception as e:
            current_app.logger.error(f'Image compression error: {str(e)}')
            return None

    @staticmethod
    def upload_file(file, folder='images', compress=True):
        """
        Upload file to S3

        Returns:
            S3 URL or None
        """
        if not file or not S3Service.allowed_file(file.filename):
            return None

        try:
            s3_client = S3Service.get_s3_client()
            bucket_name = current_app.config.get('S3_BUCKET_NAME')

            file_ext = file_extension(file.filename)
            content_type = CONTENT_TYPES.get(file_ext, 'application/octet-stream')
            file_to_upload = file

            if compress and file_ext in ['jpg', 'jpeg', 'png']:
                compressed_file = S3Service.compress_image(file)
                if compressed_file:
                    file_to_upload = compressed_file
                    file_ext = 'jpg'
                    content_type = 'image/jpeg'
                else:
                    file.seek(0)

            s3_key = f"{folder}/{uuid.uuid4().hex}.{file_ext}"

            # Identity documents stay private
            s3_client.upload_fileobj(
                file_to_upload,
                bucket_name,
                s3_key,
                ExtraArgs={'ContentType': content_type}
            )

            return f"https://{bucket_name}.s3.{current_app.config.get('AWS_REGION', 'us-east-1')}.amazonaws.com/{s3_key}"

        except ClientError as e:
            current_app.logger.error(f'S3 upload error: {str(e)}')
            return None

    @staticmethod
    def delete_file(s3_url):
        """Delete file from S3; returns success"""
        try:
            s3_client = S3Service.get_s3_client()
            bucket_name = current_app.config.get('S3_BUCKET_NAME')

            # Format: https://bucket-name.s3.region.amazonaws.com/folder/filename.ext
            key = s3_url.split(f"{bucket_name}.s3.")[1].split('/', 1)[1]

            s3_client.delete_object(Bucket=bucket_name, Key=key)
            return True

        except (ClientError, IndexError) as e:
            current_app.logger.error(f'S3 delete error: {str(e)}')
            return False


class LocalStorageService:
    """
    Fallback service for local file storage
    Used in development and tests when S3 is not configured
    """

    @staticmethod
    def upload_file(file, folder='uploads'):
        """Save file locally; returns a relative URL or None"""
        if not file or not S3Service.allowed_file(file.filename):
            return None

        upload_root = current_app.config.get('UPLOAD_FOLDER', 'uploads')
        upload_folder = os.path.join(current_app.root_path, '..', upload_root, folder)
        os.makedirs(upload_folder, exist_ok=True)

        filename = f"{uuid.uuid4().hex}.{file_extension(file.filename)}"
        file.save(os.path.join(upload_folder, filename))

        return f"/{upload_root}/{folder}/{filename}"


def store_file(file, folder, compress=True):
    """Upload to S3 when configured, otherwise to local disk"""
    if S3Service.is_configured():
        return S3Service.upload_file(file, folder=folder, compress=compress)
    return LocalStorageService.upload_file(file, folder=folder)


def store_files(files, folder):
    urls = []
    for file in files:
        url = store_file(file, folder)
        if url:
            urls.append(url)
    return urls
